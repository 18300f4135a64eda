"""
Shared fixtures: a scripted Telnet printer on localhost and fast link timings.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

import pytest

from cij_link_service.link import (
    CompletionPolicy,
    ConnectionRegistry,
    ConnectionSupervisor,
    PrinterLink,
)
from cij_link_service.link.telnet import negotiate
from cij_link_service.models import PrinterEndpoint

Responder = Callable[['FakePrinter', str, asyncio.StreamWriter], Awaitable[None]]


async def prompt_responder(printer: 'FakePrinter', line: str, writer: asyncio.StreamWriter):
    """Answer every command with an echo and the prompt."""
    writer.write(f'{line} OK\r\n>'.encode())
    await writer.drain()


class FakePrinter:
    """Minimal CIJ firmware stand-in: accepts sessions, reads CRLF lines."""

    def __init__(self, responder: Responder = prompt_responder, greeting: bytes = b'',
                 close_on_accept: bool = False):
        self.responder = responder
        self.greeting = greeting
        self.close_on_accept = close_on_accept
        self.sessions = 0
        self.lines: List[str] = []
        self.raw = bytearray()
        self.writers: List[asyncio.StreamWriter] = []
        self.port: Optional[int] = None
        self._server: Optional[asyncio.AbstractServer] = None

    async def start(self) -> 'FakePrinter':
        self._server = await asyncio.start_server(self._handle, '127.0.0.1', 0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def stop(self):
        self.drop()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    def endpoint(self, printer_id: int = 1) -> PrinterEndpoint:
        return PrinterEndpoint(id=printer_id, ip_address='127.0.0.1', port=self.port)

    def drop(self):
        """Close every session from the printer side."""
        for writer in self.writers:
            writer.close()
        self.writers.clear()

    @property
    def open_sessions(self) -> int:
        return sum(1 for w in self.writers if not w.is_closing())

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.sessions += 1
        if self.close_on_accept:
            writer.close()
            return
        self.writers.append(writer)
        if self.greeting:
            writer.write(self.greeting)
            await writer.drain()

        buffer = b''
        try:
            while True:
                chunk = await reader.read(1024)
                if not chunk:
                    break
                self.raw.extend(chunk)
                text, _ = negotiate(chunk)
                buffer += text
                while b'\r\n' in buffer:
                    line, buffer = buffer.split(b'\r\n', 1)
                    decoded = line.decode()
                    self.lines.append(decoded)
                    await self.responder(self, decoded, writer)
        except (ConnectionError, asyncio.CancelledError):
            pass
        finally:
            if not writer.is_closing():
                writer.close()


def fast_link() -> PrinterLink:
    """Link with timings short enough for tests."""
    supervisor = ConnectionSupervisor(ConnectionRegistry(), settle=0.02,
                                      connect_timeout=1.0, ephemeral_connect_timeout=1.0)
    policy = CompletionPolicy(idle_window=0.05, ephemeral_ceiling=0.5, interactive_ceiling=0.8)
    return PrinterLink(supervisor, policy, probe_timeout=0.5)


@pytest.fixture
def policy():
    return CompletionPolicy(idle_window=0.05, ephemeral_ceiling=0.5, interactive_ceiling=0.8)


@pytest.fixture
async def supervisor():
    sup = ConnectionSupervisor(ConnectionRegistry(), settle=0.02,
                               connect_timeout=1.0, ephemeral_connect_timeout=1.0)
    yield sup
    sup.shutdown()
    await asyncio.sleep(0)


@pytest.fixture
def link(supervisor, policy):
    return PrinterLink(supervisor, policy, probe_timeout=0.5)


@pytest.fixture
async def printer():
    fake = await FakePrinter().start()
    yield fake
    await fake.stop()


@pytest.fixture
async def make_printer():
    """Factory for printers with custom behaviour, stopped after the test."""
    started = []

    async def factory(**kwargs) -> FakePrinter:
        fake = await FakePrinter(**kwargs).start()
        started.append(fake)
        return fake

    yield factory

    for fake in started:
        await fake.stop()
