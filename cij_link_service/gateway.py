"""
Local Control Gateway
=====================

Blocking, in-process entry point to the printer link.

The link runs on one asyncio event loop owned by a daemon thread. Gateway
methods may be called from any thread (UI code, relay request threads): they
hand a coroutine to that loop and wait for the outcome, so all connection
state is only ever touched by the loop thread.

Usage:
    from cij_link_service.gateway import LocalGateway

    gateway = LocalGateway()
    gateway.start()

    gateway.connect(1, '10.0.0.5', 23)
    result = gateway.send_command(1, '^VV')
    # {'success': True, 'response': '...'}

    gateway.shutdown()
"""

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel, ValidationError

from .config import GATEWAY_CALL_TIMEOUT, TELNET_PORT
from .link import GatewayTimeout, InvalidRequestBody, PrinterLink, PrinterLinkError
from .models import (
    DisconnectRequest,
    PrinterAddress,
    SendCommandRequest,
    StatusResult,
)

logger = logging.getLogger(__name__)


def validation_message(error: ValidationError) -> str:
    """Compact one-line summary of a pydantic ValidationError."""
    parts = []
    for item in error.errors():
        location = '.'.join(str(p) for p in item.get('loc', ())) or 'body'
        parts.append(f"{location}: {item.get('msg', 'invalid')}")
    return '; '.join(parts)


def validate(schema: type, data: Any) -> BaseModel:
    """Validate data against a request schema, raising InvalidRequestBody."""
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise InvalidRequestBody(validation_message(e))


class CoreLoop:
    """Event loop running on a dedicated daemon thread."""

    def __init__(self, name: str = 'cij-link-loop'):
        self.name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._started = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.running:
            return
        self._loop = asyncio.new_event_loop()
        self._started.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        self._started.wait()

    def _run(self):
        asyncio.set_event_loop(self._loop)
        self._loop.call_soon(self._started.set)
        try:
            self._loop.run_forever()
        finally:
            self._loop.run_until_complete(self._loop.shutdown_asyncgens())
            self._loop.close()

    def call(self, coro, timeout: float = GATEWAY_CALL_TIMEOUT):
        """Run a coroutine on the loop and block for its result."""
        if not self.running:
            coro.close()
            raise RuntimeError('Core loop is not running')
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise

    def call_soon(self, callback: Callable, *args):
        self._loop.call_soon_threadsafe(callback, *args)

    def stop(self):
        if not self.running:
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)
        self._thread = None


class LocalGateway:
    """Connect, disconnect, send-command and check-status for in-process callers."""

    def __init__(self, link: PrinterLink = None, loop: CoreLoop = None,
                 call_timeout: float = GATEWAY_CALL_TIMEOUT):
        self.loop = loop or CoreLoop()
        self.call_timeout = call_timeout
        self._link = link
        self._lock = threading.Lock()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> 'LocalGateway':
        with self._lock:
            if not self.loop.running:
                self.loop.start()
            if self._link is None:
                # Built on the loop so its asyncio objects bind to it
                self._link = self.loop.call(self._build_link())
        return self

    @staticmethod
    async def _build_link() -> PrinterLink:
        return PrinterLink()

    @property
    def link(self) -> PrinterLink:
        if self._link is None or not self.loop.running:
            self.start()
        return self._link

    def shutdown(self):
        """Close every printer connection and stop the loop."""
        with self._lock:
            if not self.loop.running:
                return
            if self._link is not None:
                try:
                    self.loop.call(self._link.shutdown(), timeout=5)
                except concurrent.futures.TimeoutError:
                    logger.warning('Timed out closing printer connections')
            self.loop.stop()
            logger.info('Printer link stopped')

    def _call(self, coro_factory: Callable, *args):
        link = self.link
        try:
            return self.loop.call(coro_factory(link, *args), timeout=self.call_timeout)
        except concurrent.futures.TimeoutError:
            raise GatewayTimeout()

    # =========================================================================
    # Operations
    # =========================================================================

    def connect(self, printer_id: int, ip_address: str, port: int = TELNET_PORT) -> Dict[str, Any]:
        """
        Open (or reuse) the session to a printer.

        Returns:
            {'success': True, 'reused': bool} or {'success': False, 'error': ...}
        """
        try:
            endpoint = self._endpoint(printer_id, ip_address, port)
            reused = self._call(PrinterLink.connect, endpoint)
            return {'success': True, 'reused': reused}
        except PrinterLinkError as e:
            logger.warning('Connect to printer %s failed: %s', printer_id, e)
            return e.to_dict()

    def set_meta(self, printer_id: int, ip_address: str, port: int = TELNET_PORT) -> Dict[str, Any]:
        """Record a printer address so commands can open ephemeral sessions."""
        try:
            endpoint = self._endpoint(printer_id, ip_address, port)
            self._call(PrinterLink.set_meta, endpoint)
            return {'success': True}
        except PrinterLinkError as e:
            return e.to_dict()

    def disconnect(self, printer_id: int) -> Dict[str, Any]:
        """Close the session to a printer. Always succeeds."""
        try:
            request = validate(DisconnectRequest, {'printerId': printer_id})
        except InvalidRequestBody as e:
            return e.to_dict()
        try:
            self._call(PrinterLink.disconnect, request.printer_id)
        except GatewayTimeout:
            # The timed-out call was cancelled; queue the release behind the busy work
            logger.warning('Disconnect of printer %s queued, link is busy', printer_id)
            self.loop.call_soon(self.link.supervisor.release_connection, request.printer_id)
        return {'success': True}

    def send_command(self, printer_id: int, command: str) -> Dict[str, Any]:
        """
        Send one command line and wait for the response.

        Returns:
            {'success': True, 'response': str} or {'success': False, 'error': ...}
        """
        try:
            request = validate(SendCommandRequest, {'printerId': printer_id, 'command': command})
            response = self._call(PrinterLink.send_command, request.printer_id, request.command)
            return {'success': True, 'response': response}
        except PrinterLinkError as e:
            logger.info('Command %r to printer %s failed: %s', command, printer_id, e)
            return e.to_dict()

    def check_status(self, printers: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Probe reachability of printers without opening Telnet sessions.

        Args:
            printers: [{'id': 1, 'ipAddress': '10.0.0.5', 'port': 23}, ...]

        Returns:
            [{'id', 'isAvailable', 'status', 'responseTime'?, 'error'?}, ...]
            in request order; malformed entries come back offline with the
            validation error.
        """
        results: List[Optional[Dict[str, Any]]] = []
        endpoints = []
        slots = []
        for entry in printers:
            try:
                endpoints.append(validate(PrinterAddress, entry).to_endpoint())
                slots.append(len(results))
                results.append(None)
            except InvalidRequestBody as e:
                printer_id = entry.get('id') if isinstance(entry, dict) else None
                results.append(StatusResult.offline(printer_id, str(e)).to_dict())

        if endpoints:
            try:
                statuses = self._call(PrinterLink.check_status, endpoints)
            except GatewayTimeout as e:
                statuses = [StatusResult.offline(endpoint.id, str(e)) for endpoint in endpoints]
            for slot, status in zip(slots, statuses):
                results[slot] = status.to_dict()
        return results

    def connection_count(self) -> int:
        return self._call(PrinterLink.connection_count)

    def add_connection_lost_listener(self, listener: Callable[[int], None]):
        """
        Register listener(printer_id) for sessions the printer dropped.

        The listener runs on the core loop thread and must not block.
        """
        self.loop.call_soon(self.link.supervisor.add_connection_lost_listener, listener)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _endpoint(printer_id: int, ip_address: str, port: int):
        address = validate(PrinterAddress, {'id': printer_id, 'ipAddress': ip_address, 'port': port})
        return address.to_endpoint()
