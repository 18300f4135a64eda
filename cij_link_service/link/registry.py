"""
Connection Registry
===================

Table of printer id -> live connection, plus the last-known address of every
printer seen so commands can reconnect without the caller resupplying it.

Only the supervisor and the command channel touch the registry, and both run
on the single core event loop thread.
"""

from typing import Dict, List, Optional, TYPE_CHECKING

from ..models import PrinterEndpoint

if TYPE_CHECKING:
    from .connection import PrinterConnection


class ConnectionRegistry:
    """Printer id keyed connections and addresses."""

    def __init__(self):
        self._connections: Dict[int, 'PrinterConnection'] = {}
        self._endpoints: Dict[int, PrinterEndpoint] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, printer_id: int) -> bool:
        return printer_id in self._connections

    # -------------------------------------------------------------------------
    # Connections
    # -------------------------------------------------------------------------

    def get(self, printer_id: int) -> Optional['PrinterConnection']:
        return self._connections.get(printer_id)

    def put(self, connection: 'PrinterConnection'):
        """Store a connection. An existing entry for the id must be gone first."""
        existing = self._connections.get(connection.owner_id)
        if existing is not None and existing is not connection:
            raise RuntimeError(f'Printer {connection.owner_id} already has a connection')
        self._connections[connection.owner_id] = connection

    def pop(self, printer_id: int,
            connection: 'PrinterConnection' = None) -> Optional['PrinterConnection']:
        """
        Remove the entry for a printer.

        Args:
            printer_id: Printer whose entry goes
            connection: Only remove if the entry is this exact connection

        Returns:
            The removed connection, or None
        """
        current = self._connections.get(printer_id)
        if current is None:
            return None
        if connection is not None and current is not connection:
            return None
        return self._connections.pop(printer_id)

    def connections(self) -> List['PrinterConnection']:
        return list(self._connections.values())

    def clear(self) -> List['PrinterConnection']:
        """Drop every connection and address, returning the connections."""
        removed = list(self._connections.values())
        self._connections.clear()
        self._endpoints.clear()
        return removed

    # -------------------------------------------------------------------------
    # Last-known addresses
    # -------------------------------------------------------------------------

    def remember(self, endpoint: PrinterEndpoint):
        self._endpoints[endpoint.id] = endpoint

    def endpoint_for(self, printer_id: int) -> Optional[PrinterEndpoint]:
        return self._endpoints.get(printer_id)
