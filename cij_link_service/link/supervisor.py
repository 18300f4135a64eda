"""
Connection Supervisor
=====================

Owns every decision about opening, reusing and tearing down printer
connections, and through that the rule that a printer never has more than one
live session (the firmware only allows one).

Create-or-reuse is atomic on the core loop: the registry check and the
registration of an in-flight open happen without a suspension point between
them, so concurrent callers for the same printer share one connection attempt.
"""

import asyncio
import logging
from typing import Callable, Dict, List, Tuple

from .connection import PrinterConnection
from .errors import (
    ConnectRefused,
    ConnectTimeout,
    NotConnected,
    PrinterLinkError,
    SocketError,
)
from .registry import ConnectionRegistry
from ..config import CONNECT_TIMEOUT, EPHEMERAL_CONNECT_TIMEOUT, HANDSHAKE_SETTLE
from ..models import PrinterEndpoint

logger = logging.getLogger(__name__)

ConnectionLostListener = Callable[[int], None]


class ConnectionSupervisor:
    """Connect, reuse and release printer sessions."""

    def __init__(self, registry: ConnectionRegistry = None, *,
                 settle: float = HANDSHAKE_SETTLE,
                 connect_timeout: float = CONNECT_TIMEOUT,
                 ephemeral_connect_timeout: float = EPHEMERAL_CONNECT_TIMEOUT):
        self.registry = registry or ConnectionRegistry()
        self.settle = settle
        self.connect_timeout = connect_timeout
        self.ephemeral_connect_timeout = ephemeral_connect_timeout

        self._opening: Dict[int, asyncio.Task] = {}
        # Bumped when a release races an open, so that open is dropped
        self._generation: Dict[int, int] = {}
        self._lost_listeners: List[ConnectionLostListener] = []

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def ensure_connection(self, endpoint: PrinterEndpoint) -> Tuple[PrinterConnection, bool]:
        """
        Return a usable connection for a printer, opening one if needed.

        Args:
            endpoint: Printer id and address

        Returns:
            (connection, reused) - reused is True when no new socket was opened
        """
        current = self.registry.get(endpoint.id)
        if current is not None and current.is_writable:
            if current.endpoint == endpoint:
                if current.ephemeral:
                    logger.debug('Promoting ephemeral connection to printer %s', endpoint.id)
                    current.ephemeral = False
                return current, True
            logger.info('Printer %s moved from %s to %s, reconnecting',
                        endpoint.id, current.endpoint.address, endpoint.address)

        opening = self._opening.get(endpoint.id)
        if opening is not None:
            connection = await asyncio.shield(opening)
            if connection.endpoint == endpoint:
                connection.ephemeral = False
                return connection, True
            # Address changed while the old attempt was in flight
            self.discard(connection)

        if current is not None:
            logger.debug('Dropping stale connection %r', current)
            self.discard(current)

        connection = await self._open_tracked(endpoint, self.connect_timeout, ephemeral=False)
        return connection, False

    async def acquire(self, printer_id: int) -> PrinterConnection:
        """
        Connection for sending a command: the live one, or an ephemeral one
        opened to the last-known address.

        Raises:
            NotConnected: No live connection and no address on record
        """
        current = self.registry.get(printer_id)
        if current is not None and current.is_writable:
            return current

        opening = self._opening.get(printer_id)
        if opening is not None:
            return await asyncio.shield(opening)

        endpoint = self.registry.endpoint_for(printer_id)
        if endpoint is None:
            raise NotConnected(f'Printer {printer_id} not connected')

        if current is not None:
            self.discard(current)

        logger.debug('Opening ephemeral connection to printer %s at %s',
                     printer_id, endpoint.address)
        return await self._open_tracked(endpoint, self.ephemeral_connect_timeout, ephemeral=True)

    def remember(self, endpoint: PrinterEndpoint):
        """Record a printer address without opening a socket."""
        self.registry.remember(endpoint)

    def release_connection(self, printer_id: int):
        """Force-close and forget the connection of a printer, if any."""
        if printer_id in self._opening:
            self._bump_generation(printer_id)
        connection = self.registry.pop(printer_id)
        if connection is not None:
            logger.info('Releasing connection to printer %s', printer_id)
            connection.close()

    def discard(self, connection: PrinterConnection):
        """Close one specific connection and drop it from the registry."""
        self.registry.pop(connection.owner_id, connection)
        connection.close()

    def shutdown(self):
        """Close every connection and clear the registry."""
        for task in list(self._opening.values()):
            task.cancel()
        for printer_id in list(self._opening):
            self._bump_generation(printer_id)
        connections = self.registry.clear()
        for connection in connections:
            connection.close()
        if connections:
            logger.info('Closed %d printer connection(s)', len(connections))

    def add_connection_lost_listener(self, listener: ConnectionLostListener):
        """Call listener(printer_id) when a persistent session drops unexpectedly."""
        self._lost_listeners.append(listener)

    def remove_connection_lost_listener(self, listener: ConnectionLostListener):
        if listener in self._lost_listeners:
            self._lost_listeners.remove(listener)

    # -------------------------------------------------------------------------
    # Opening
    # -------------------------------------------------------------------------

    def _bump_generation(self, printer_id: int):
        self._generation[printer_id] = self._generation.get(printer_id, 0) + 1

    async def _open_tracked(self, endpoint: PrinterEndpoint, timeout: float,
                            ephemeral: bool) -> PrinterConnection:
        task = asyncio.get_running_loop().create_task(
            self._open(endpoint, timeout, ephemeral, self._generation.get(endpoint.id, 0)))
        self._opening[endpoint.id] = task

        def finished(t: asyncio.Task):
            if self._opening.get(endpoint.id) is t:
                del self._opening[endpoint.id]
                self._generation.pop(endpoint.id, None)
            if not t.cancelled():
                t.exception()  # retrieved here so abandoned attempts stay quiet

        task.add_done_callback(finished)
        return await asyncio.shield(task)

    async def _open(self, endpoint: PrinterEndpoint, timeout: float,
                    ephemeral: bool, generation: int) -> PrinterConnection:
        loop = asyncio.get_running_loop()

        def factory():
            return PrinterConnection(endpoint, ephemeral=ephemeral, settle=self.settle,
                                     on_lost=self._connection_lost)

        logger.debug('Connecting to printer %s at %s', endpoint.id, endpoint.address)
        try:
            _, connection = await asyncio.wait_for(
                loop.create_connection(factory, endpoint.ip_address, endpoint.port),
                timeout)
        except asyncio.TimeoutError:
            raise ConnectTimeout(f'Connection timeout to {endpoint.address}')
        except ConnectionRefusedError:
            raise ConnectRefused(f'Connection refused by {endpoint.address}')
        except OSError as e:
            raise SocketError(f'{endpoint.address}: {e.strerror or e}')

        try:
            await connection.ready
        except PrinterLinkError as e:
            logger.warning('Printer %s handshake failed: %s', endpoint.id, e)
            connection.close()
            raise
        except asyncio.CancelledError:
            connection.close()
            raise

        if self._generation.get(endpoint.id, 0) != generation:
            connection.close()
            raise NotConnected(f'Printer {endpoint.id} was disconnected while connecting')

        self.registry.put(connection)
        self.registry.remember(endpoint)
        logger.info('Connected to printer %s at %s%s', endpoint.id, endpoint.address,
                    ' (ephemeral)' if ephemeral else '')
        return connection

    def _connection_lost(self, connection: PrinterConnection, exc):
        removed = self.registry.pop(connection.owner_id, connection)
        if removed is None or connection.closed_locally or connection.ephemeral:
            return
        for listener in list(self._lost_listeners):
            try:
                listener(connection.owner_id)
            except Exception:
                logger.exception('Connection-lost listener failed for printer %s',
                                 connection.owner_id)
