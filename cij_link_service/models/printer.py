"""
Printer Models
==============

Addressing and status records exchanged with the gateways.
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any

from ..config import TELNET_PORT


@dataclass(frozen=True)
class PrinterEndpoint:
    """Where a printer lives on the network."""

    id: int
    ip_address: str
    port: int = TELNET_PORT

    def to_dict(self) -> Dict[str, Any]:
        """Convert to wire format (camelCase keys)."""
        return {
            'id': self.id,
            'ipAddress': self.ip_address,
            'port': self.port,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PrinterEndpoint':
        """Create from wire format."""
        return cls(
            id=int(data['id']),
            ip_address=data['ipAddress'],
            port=int(data.get('port') or TELNET_PORT),
        )

    @property
    def address(self) -> str:
        return f'{self.ip_address}:{self.port}'


@dataclass
class StatusResult:
    """Outcome of a reachability probe for one printer."""

    id: int
    is_available: bool
    status: str = "offline"  # ready, offline
    response_time: Optional[float] = None  # milliseconds
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to wire format, omitting unset optional fields."""
        data = {
            'id': self.id,
            'isAvailable': self.is_available,
            'status': self.status,
        }
        if self.response_time is not None:
            data['responseTime'] = self.response_time
        if self.error is not None:
            data['error'] = self.error
        return data

    @classmethod
    def online(cls, printer_id: int, response_time: float) -> 'StatusResult':
        return cls(id=printer_id, is_available=True, status='ready',
                   response_time=response_time)

    @classmethod
    def offline(cls, printer_id: int, error: str) -> 'StatusResult':
        return cls(id=printer_id, is_available=False, status='offline', error=error)
