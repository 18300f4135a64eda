"""
Printer Connection
==================

asyncio protocol wrapping one Telnet session to a printer.

Lifecycle:
    connecting -> open       handshake-settle timer fired after TCP connect
    open -> closing          close() requested locally
    * -> closed              socket gone (peer close, error, or abort)

The session is declared open once the settle timer fires, whether or not the
printer actually sent any negotiation. Inbound chunks are Telnet-stripped,
refusals are written straight back, and the remaining text goes to whichever
command is pending on the connection.
"""

import asyncio
import logging
import socket
from enum import Enum
from typing import Callable, Optional

from . import telnet
from .errors import ClosedDuringHandshake, SocketError
from ..config import HANDSHAKE_SETTLE, KEEPALIVE_IDLE, KEEPALIVE_INTERVAL
from ..models import PrinterEndpoint

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    CONNECTING = 'connecting'
    OPEN = 'open'
    CLOSING = 'closing'
    CLOSED = 'closed'


def enable_keepalive(sock: Optional[socket.socket],
                     idle: int = KEEPALIVE_IDLE, interval: int = KEEPALIVE_INTERVAL):
    """Turn on TCP keep-alive probes where the platform allows tuning them."""
    if sock is None:
        return
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
        if hasattr(socket, 'TCP_KEEPIDLE'):
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, idle)
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, interval)
        elif hasattr(socket, 'TCP_KEEPALIVE'):  # macOS
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPALIVE, idle)
    except OSError as e:
        logger.debug('Could not configure keep-alive: %s', e)


class PrinterConnection(asyncio.Protocol):
    """One TCP/Telnet session to one printer."""

    def __init__(self, endpoint: PrinterEndpoint, *, ephemeral: bool = False,
                 settle: float = HANDSHAKE_SETTLE,
                 on_lost: Callable[['PrinterConnection', Optional[Exception]], None] = None):
        self.endpoint = endpoint
        self.ephemeral = ephemeral
        self.state = ConnectionState.CONNECTING
        self.handshake_seen = False
        self.closed_locally = False

        # Command currently waiting for its response (see channel.PendingCommand)
        self.pending = None
        # Serializes commands; waiting counts callers queued on the lock
        self.command_lock = asyncio.Lock()
        self.waiting = 0

        self.transport: Optional[asyncio.Transport] = None
        self._loop = asyncio.get_running_loop()
        self._settle = settle
        self._settle_handle: Optional[asyncio.TimerHandle] = None
        self._on_lost = on_lost
        self.ready: asyncio.Future = self._loop.create_future()

    def __repr__(self):
        return (f'<PrinterConnection printer={self.owner_id} {self.endpoint.address} '
                f'{self.state.value}{" ephemeral" if self.ephemeral else ""}>')

    @property
    def owner_id(self) -> int:
        return self.endpoint.id

    @property
    def is_writable(self) -> bool:
        return (self.state is ConnectionState.OPEN
                and self.transport is not None
                and not self.transport.is_closing())

    # -------------------------------------------------------------------------
    # asyncio.Protocol callbacks
    # -------------------------------------------------------------------------

    def connection_made(self, transport):
        self.transport = transport
        enable_keepalive(transport.get_extra_info('socket'))
        logger.debug('TCP connected to %s, settling for %.3fs', self.endpoint.address, self._settle)
        self._settle_handle = self._loop.call_later(self._settle, self._settled)

    def data_received(self, data: bytes):
        if telnet.has_control(data):
            self.handshake_seen = True

        payload, reply = telnet.negotiate(data)
        if reply and self.transport is not None and not self.transport.is_closing():
            self.transport.write(reply)
            logger.debug('Refused telnet options from %s: %s', self.endpoint.address, reply.hex())

        if not payload:
            return
        if self.pending is not None:
            self.pending.feed(payload)
        else:
            logger.debug('Discarding %d unsolicited bytes from printer %s',
                         len(payload), self.owner_id)

    def eof_received(self):
        # Returning False lets asyncio close the transport
        return False

    def connection_lost(self, exc: Optional[Exception]):
        was_open = self.state is ConnectionState.OPEN
        self.state = ConnectionState.CLOSED
        if self._settle_handle is not None:
            self._settle_handle.cancel()
            self._settle_handle = None

        if not self.ready.done():
            if exc is not None:
                self.ready.set_exception(SocketError(str(exc)))
            else:
                self.ready.set_exception(ClosedDuringHandshake())

        if self.pending is not None:
            if self.closed_locally:
                self.pending.fail(SocketError(
                    f'Connection to {self.endpoint.address} was closed locally'))
            else:
                self.pending.peer_closed(exc)

        if was_open and not self.closed_locally:
            logger.info('Printer %s closed the connection%s', self.owner_id,
                        f' ({exc})' if exc else '')

        if self._on_lost is not None:
            self._on_lost(self, exc)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def _settled(self):
        self._settle_handle = None
        if self.state is ConnectionState.CONNECTING and not self.ready.done():
            self.state = ConnectionState.OPEN
            self.ready.set_result(self)
            logger.debug('Printer %s session open (negotiation seen: %s)',
                         self.owner_id, self.handshake_seen)

    def write_line(self, text: str):
        """Write one command line, CRLF terminated."""
        if not self.is_writable:
            raise SocketError(f'Connection to {self.endpoint.address} is not writable')
        self.transport.write(text.encode('utf-8') + b'\r\n')

    def close(self):
        """Force-close the socket. Safe to call more than once."""
        self.closed_locally = True
        if self.state is ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSING
        if self.transport is not None:
            self.transport.abort()
