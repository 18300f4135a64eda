"""
CIJ Link Relay Client
=====================

Python SDK for driving printers through a CIJ Link relay, the same way the
companion mobile clients do.

Usage:
    from cij_link_service.client import RelayClient

    client = RelayClient('http://192.168.1.50:8766')

    if client.is_relay():
        client.connect(1, '10.0.0.5', 23)
        result = client.send_command(1, '^VV')
        print(result.get('response'))
        client.disconnect(1)
"""

import requests
from typing import Dict, Any, List

from .config import RELAY_PORT, TELNET_PORT

INFO_TIMEOUT = 3
REQUEST_TIMEOUT = 15


class RelayClient:
    """Client for a CIJ Link relay."""

    def __init__(self, base_url: str = f'http://localhost:{RELAY_PORT}',
                 timeout: float = REQUEST_TIMEOUT):
        """
        Initialize client.

        Args:
            base_url: Base URL of the relay (scheme, host, port)
            timeout: Seconds to wait for relay operations
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = requests.Session()

    @classmethod
    def for_host(cls, host: str, port: int = RELAY_PORT) -> 'RelayClient':
        """Client for a relay PC given its LAN address."""
        return cls(f'http://{host}:{port}')

    def _post(self, endpoint: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """POST to a relay operation."""
        url = f'{self.base_url}/relay/{endpoint}'

        try:
            response = self.session.post(url, json=data, timeout=self.timeout)
            return response.json()

        except requests.exceptions.Timeout:
            return {'success': False, 'error': 'Request timeout'}
        except requests.exceptions.ConnectionError:
            return {'success': False, 'error': f'Cannot connect to {self.base_url}'}
        except ValueError:
            return {'success': False, 'error': 'Invalid response from relay'}

    # =========================================================================
    # Discovery
    # =========================================================================

    def info(self) -> Dict[str, Any]:
        """Relay version and LAN addresses."""
        try:
            response = self.session.get(f'{self.base_url}/relay/info', timeout=INFO_TIMEOUT)
            if not response.ok:
                return {'relay': False, 'error': f'HTTP {response.status_code}'}
            return response.json()
        except requests.exceptions.RequestException as e:
            return {'relay': False, 'error': str(e) or 'Cannot reach relay'}
        except ValueError:
            return {'relay': False, 'error': 'Not a relay server'}

    def is_relay(self) -> bool:
        """Check that the URL points at a reachable relay."""
        return bool(self.info().get('relay'))

    # =========================================================================
    # Printers
    # =========================================================================

    def connect(self, printer_id: int, ip_address: str, port: int = TELNET_PORT) -> Dict[str, Any]:
        """Open or reuse the printer session held by the relay."""
        return self._post('connect', {
            'printer': {'id': printer_id, 'ipAddress': ip_address, 'port': port}
        })

    def set_meta(self, printer_id: int, ip_address: str, port: int = TELNET_PORT) -> Dict[str, Any]:
        """Register a printer address so commands can connect on demand."""
        return self._post('set-meta', {
            'printer': {'id': printer_id, 'ipAddress': ip_address, 'port': port}
        })

    def disconnect(self, printer_id: int) -> Dict[str, Any]:
        """Close the printer session. Unreachable relays count as disconnected."""
        result = self._post('disconnect', {'printerId': printer_id})
        if not result.get('success') and 'errorKind' not in result:
            return {'success': True}
        return result

    def send_command(self, printer_id: int, command: str) -> Dict[str, Any]:
        """
        Send one command line.

        Args:
            printer_id: Target printer
            command: Command without terminator (e.g. '^SU')

        Returns:
            {'success': True, 'response': ...} or {'success': False, 'error': ...}
        """
        return self._post('send-command', {'printerId': printer_id, 'command': command})

    def check_status(self, printers: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Reachability of printers as seen from the relay PC.

        Args:
            printers: [{'id': 1, 'ipAddress': '10.0.0.5', 'port': 23}, ...]

        Returns:
            Per-printer status list; everything offline if the relay is unreachable
        """
        result = self._post('check-status', {'printers': printers})
        if 'printers' in result:
            return result['printers']
        return [
            {'id': p.get('id'), 'isAvailable': False, 'status': 'offline',
             'error': result.get('error', 'Relay unavailable')}
            for p in printers
        ]
