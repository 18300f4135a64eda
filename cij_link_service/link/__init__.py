"""
CIJ Link Service - Printer Link
===============================

Telnet session management and command exchange with CIJ printers.
"""

from .errors import (
    PrinterLinkError,
    ConnectTimeout,
    ConnectRefused,
    SocketError,
    ClosedDuringHandshake,
    NotConnected,
    CommandTimeout,
    ClosedByPeerNoData,
    InvalidRequestBody,
    UnknownRoute,
    GatewayTimeout,
)
from .registry import ConnectionRegistry
from .connection import PrinterConnection, ConnectionState
from .supervisor import ConnectionSupervisor
from .channel import CommandChannel, CompletionPolicy, PendingCommand, CommandState
from .core import PrinterLink

__all__ = [
    'PrinterLinkError', 'ConnectTimeout', 'ConnectRefused', 'SocketError',
    'ClosedDuringHandshake', 'NotConnected', 'CommandTimeout', 'ClosedByPeerNoData',
    'InvalidRequestBody', 'UnknownRoute', 'GatewayTimeout',
    'ConnectionRegistry', 'PrinterConnection', 'ConnectionState',
    'ConnectionSupervisor', 'CommandChannel', 'CompletionPolicy', 'PendingCommand',
    'CommandState', 'PrinterLink',
]
