"""
Command Channel
===============

Sends one command line to a printer and decides when the answer is complete.

The firmware protocol has no framing, so completion is a heuristic driven by
a CompletionPolicy:

- the accumulated text contains the prompt character -> done immediately
- otherwise every new chunk restarts a short idle timer; when it expires
  the response is done
- a ceiling timer bounds the whole exchange: with any data it finalizes
  what arrived, with none it fails with CommandTimeout
- the printer closing the socket finalizes whatever arrived, or fails with
  ClosedByPeerNoData when nothing did

Swapping the policy (or this module) is the way to support firmware that
frames its responses.
"""

import asyncio
import codecs
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .connection import PrinterConnection
from .errors import ClosedByPeerNoData, CommandTimeout, SocketError
from .supervisor import ConnectionSupervisor
from ..config import EPHEMERAL_CEILING, IDLE_WINDOW, INTERACTIVE_CEILING, PROMPT_CHAR

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionPolicy:
    """Tunable timings of the completion heuristic (seconds)."""

    idle_window: float = IDLE_WINDOW
    ephemeral_ceiling: float = EPHEMERAL_CEILING
    interactive_ceiling: float = INTERACTIVE_CEILING
    prompt: str = PROMPT_CHAR

    def ceiling_for(self, ephemeral: bool) -> float:
        return self.ephemeral_ceiling if ephemeral else self.interactive_ceiling


class CommandState(str, Enum):
    AWAITING_RESPONSE = 'awaiting-response'
    COMPLETING = 'completing'
    TIMED_OUT = 'timed-out'
    CLOSED_WITH_DATA = 'closed-with-data'
    CLOSED_WITHOUT_DATA = 'closed-without-data'
    FAILED = 'failed'


class PendingCommand:
    """A written command waiting for its response to be judged complete."""

    def __init__(self, text: str, policy: CompletionPolicy, ceiling: float,
                 on_done: Callable[['PendingCommand'], None] = None):
        self._loop = asyncio.get_running_loop()
        self.text = text
        self.issued_at = self._loop.time()
        self.accumulated_response = ''
        self.saw_any_data = False
        self.state = CommandState.AWAITING_RESPONSE
        self.result: asyncio.Future = self._loop.create_future()

        self._policy = policy
        self._ceiling = ceiling
        self._on_done = on_done
        self._decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        self._idle_handle: Optional[asyncio.TimerHandle] = None
        self._ceiling_handle = self._loop.call_later(ceiling, self._ceiling_reached)

    @property
    def done(self) -> bool:
        return self.result.done()

    @property
    def elapsed(self) -> float:
        return self._loop.time() - self.issued_at

    def feed(self, payload: bytes):
        """Take Telnet-stripped bytes from the connection."""
        if self.done or not payload:
            return
        self.saw_any_data = True
        self.accumulated_response += self._decoder.decode(payload)

        if self._policy.prompt in self.accumulated_response:
            self._finish(CommandState.COMPLETING)
            return

        if self._idle_handle is not None:
            self._idle_handle.cancel()
        self._idle_handle = self._loop.call_later(self._policy.idle_window, self._idle_expired)

    def peer_closed(self, exc: Optional[Exception] = None):
        """The socket went away while this command was outstanding."""
        if self.done:
            return
        if self.saw_any_data:
            self._finish(CommandState.CLOSED_WITH_DATA)
        elif exc is not None:
            self._fail(CommandState.CLOSED_WITHOUT_DATA, SocketError(str(exc)))
        else:
            self._fail(CommandState.CLOSED_WITHOUT_DATA, ClosedByPeerNoData())

    def fail(self, error: Exception):
        if not self.done:
            self._fail(CommandState.FAILED, error)

    def _idle_expired(self):
        self._idle_handle = None
        if not self.done:
            self._finish(CommandState.COMPLETING)

    def _ceiling_reached(self):
        self._ceiling_handle = None
        if self.done:
            return
        if self.saw_any_data:
            self._finish(CommandState.TIMED_OUT)
        else:
            self._fail(CommandState.TIMED_OUT, CommandTimeout(
                f'No response to {self.text!r} within {self._ceiling:g}s'))

    def _cancel_timers(self):
        for handle in (self._idle_handle, self._ceiling_handle):
            if handle is not None:
                handle.cancel()
        self._idle_handle = None
        self._ceiling_handle = None

    def _finish(self, state: CommandState):
        self._cancel_timers()
        self.accumulated_response += self._decoder.decode(b'', final=True)
        self.state = state
        self.result.set_result(self.accumulated_response)
        self._done()

    def _fail(self, state: CommandState, error: Exception):
        self._cancel_timers()
        self.state = state
        self.result.set_exception(error)
        self._done()

    def _done(self):
        if self._on_done is not None:
            self._on_done(self)


class CommandChannel:
    """Sends commands over supervised printer connections."""

    def __init__(self, supervisor: ConnectionSupervisor, policy: CompletionPolicy = None):
        self.supervisor = supervisor
        self.policy = policy or CompletionPolicy()

    async def send(self, printer_id: int, text: str) -> str:
        """
        Send a command and wait for its response.

        Uses the live connection of the printer if there is one, otherwise
        opens an ephemeral connection to its last-known address which is torn
        down once the command completes.

        Args:
            printer_id: Target printer
            text: Command line without terminator (e.g. '^VV')

        Returns:
            Response text as received (Telnet-stripped)

        Raises:
            NotConnected, ConnectTimeout, SocketError, CommandTimeout,
            ClosedByPeerNoData
        """
        connection = await self.supervisor.acquire(printer_id)

        connection.waiting += 1
        queued = True
        try:
            async with connection.command_lock:
                connection.waiting -= 1
                queued = False
                if not connection.is_writable:
                    raise SocketError(f'Connection to printer {printer_id} was lost')
                return await self._execute(connection, text)
        finally:
            if queued:
                connection.waiting -= 1
            # Ephemeral sessions go once nobody runs or waits on them
            if (connection.ephemeral and connection.waiting == 0
                    and not connection.command_lock.locked()):
                self.supervisor.discard(connection)

    async def _execute(self, connection: PrinterConnection, text: str) -> str:
        ceiling = self.policy.ceiling_for(connection.ephemeral)

        def detach(pending: PendingCommand):
            if connection.pending is pending:
                connection.pending = None
            logger.debug('Printer %s %r -> %s after %.3fs (%d chars)',
                         connection.owner_id, pending.text, pending.state.value,
                         pending.elapsed, len(pending.accumulated_response))

        pending = PendingCommand(text, self.policy, ceiling, on_done=detach)
        connection.pending = pending
        try:
            connection.write_line(text)
        except SocketError as e:
            pending.fail(e)

        # Shielded: a caller giving up does not stop the timers from cleaning up
        return await asyncio.shield(pending.result)
