"""
CIJ Link Service Models
"""

from .printer import PrinterEndpoint, StatusResult
from .requests import (
    PrinterAddress,
    ConnectRequest,
    DisconnectRequest,
    SendCommandRequest,
    CheckStatusRequest,
)

__all__ = [
    'PrinterEndpoint',
    'StatusResult',
    'PrinterAddress',
    'ConnectRequest',
    'DisconnectRequest',
    'SendCommandRequest',
    'CheckStatusRequest',
]
