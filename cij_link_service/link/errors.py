"""
Link Errors
===========

Failure taxonomy for printer connections and commands.

Every error carries a stable ``kind`` string which the gateways pass on to
callers next to the human readable message.
"""


class PrinterLinkError(Exception):
    """Base class for all printer link failures."""

    kind = 'LinkError'
    default_message = 'Printer link error'

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)

    def to_dict(self) -> dict:
        return {'success': False, 'error': str(self), 'errorKind': self.kind}


class ConnectTimeout(PrinterLinkError):
    kind = 'ConnectTimeout'
    default_message = 'Connection timeout'


class SocketError(PrinterLinkError):
    kind = 'SocketError'
    default_message = 'Socket error'


class ConnectRefused(SocketError):
    kind = 'ConnectRefused'
    default_message = 'Connection refused'


class ClosedDuringHandshake(PrinterLinkError):
    kind = 'ClosedDuringHandshake'
    default_message = 'Connection closed during handshake'


class NotConnected(PrinterLinkError):
    kind = 'NotConnected'
    default_message = 'Printer not connected'


class CommandTimeout(PrinterLinkError):
    kind = 'CommandTimeout'
    default_message = 'No response from printer'


class ClosedByPeerNoData(PrinterLinkError):
    kind = 'ClosedByPeerNoData'
    default_message = 'Connection closed by printer'


class InvalidRequestBody(PrinterLinkError):
    kind = 'InvalidRequestBody'
    default_message = 'Invalid request body'


class UnknownRoute(PrinterLinkError):
    kind = 'UnknownRoute'
    default_message = 'Not found'


class GatewayTimeout(PrinterLinkError):
    kind = 'GatewayTimeout'
    default_message = 'Timed out waiting for printer link'
