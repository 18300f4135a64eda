"""
Printer Link
============

The transport-agnostic core shared by both gateways: one registry, one
supervisor, one command channel. Every method must run on the core event loop.
"""

from typing import Iterable, List

from . import probe
from .channel import CommandChannel, CompletionPolicy
from .registry import ConnectionRegistry
from .supervisor import ConnectionSupervisor
from ..config import PROBE_TIMEOUT
from ..models import PrinterEndpoint, StatusResult


class PrinterLink:
    """Async connect/disconnect/command/status operations."""

    def __init__(self, supervisor: ConnectionSupervisor = None,
                 policy: CompletionPolicy = None,
                 probe_timeout: float = PROBE_TIMEOUT):
        self.supervisor = supervisor or ConnectionSupervisor(ConnectionRegistry())
        self.channel = CommandChannel(self.supervisor, policy)
        self.probe_timeout = probe_timeout

    @property
    def registry(self) -> ConnectionRegistry:
        return self.supervisor.registry

    async def connect(self, endpoint: PrinterEndpoint) -> bool:
        """Open or reuse the session. Returns True if it was reused."""
        _, reused = await self.supervisor.ensure_connection(endpoint)
        return reused

    async def set_meta(self, endpoint: PrinterEndpoint):
        self.supervisor.remember(endpoint)

    async def disconnect(self, printer_id: int):
        self.supervisor.release_connection(printer_id)

    async def send_command(self, printer_id: int, command: str) -> str:
        return await self.channel.send(printer_id, command)

    async def check_status(self, endpoints: Iterable[PrinterEndpoint]) -> List[StatusResult]:
        return await probe.check_status(endpoints, self.probe_timeout)

    async def connection_count(self) -> int:
        return len(self.registry)

    async def shutdown(self):
        self.supervisor.shutdown()
