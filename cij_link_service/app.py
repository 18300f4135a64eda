"""
CIJ Link Service - Relay Server
===============================

LAN-facing HTTP relay letting companion mobile clients drive printers through
this process's printer link. Relay requests go through the same LocalGateway
as the desktop UI, so both share one session per printer instead of fighting
over the firmware's single session slot.

Run: python -m cij_link_service
"""

import logging
import platform
import socket
import sys
import threading
from datetime import datetime
from typing import List, Optional

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from werkzeug.serving import make_server

from . import __version__
from .config import DEBUG, LOG_FORMAT, LOG_LEVEL, RELAY_HOST, RELAY_PORT
from .gateway import LocalGateway, validate
from .link import InvalidRequestBody, UnknownRoute
from .logging_config import configure_logging
from .models import (
    CheckStatusRequest,
    ConnectRequest,
    DisconnectRequest,
    SendCommandRequest,
)

logger = logging.getLogger(__name__)

relay = Blueprint('relay', __name__, url_prefix='/relay')


# =============================================================================
# Application Setup
# =============================================================================

def create_app(gateway: LocalGateway = None) -> Flask:
    """
    Build the relay application around a gateway.

    Args:
        gateway: Gateway shared with the in-process UI (a new one if omitted)
    """
    app = Flask(__name__)
    CORS(app)

    app.extensions['cij_gateway'] = gateway or LocalGateway()
    app.register_blueprint(relay)
    app.add_url_rule('/health', 'health', health, methods=['GET'])

    app.register_error_handler(InvalidRequestBody, _invalid_body)
    app.register_error_handler(HTTPException, _http_error)
    app.register_error_handler(Exception, _unexpected_error)
    return app


def _gateway() -> LocalGateway:
    return current_app.extensions['cij_gateway']


def _parse_body(schema: type):
    """Validate the JSON body against a request schema."""
    data = request.get_json(force=True, silent=True)
    if data is None:
        raise InvalidRequestBody('Request body must be valid JSON')
    return validate(schema, data)


def lan_addresses() -> List[str]:
    """IPv4 addresses mobile clients can use to reach this host."""
    addresses = []

    # Address of the interface holding the default route (no packet is sent)
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
            probe.connect(('10.255.255.255', 1))
            addresses.append(probe.getsockname()[0])
    except OSError:
        pass

    try:
        for address in socket.gethostbyname_ex(socket.gethostname())[2]:
            if address not in addresses:
                addresses.append(address)
    except OSError:
        pass

    return [a for a in addresses if not a.startswith('127.')]


# =============================================================================
# Error Handlers
# =============================================================================

def _invalid_body(error: InvalidRequestBody):
    return jsonify(error.to_dict()), 400


def _http_error(error: HTTPException):
    if error.code == 404:
        return jsonify(UnknownRoute(f'Unknown route: {request.path}').to_dict()), 404
    return jsonify({'success': False, 'error': error.description}), error.code


def _unexpected_error(error: Exception):
    logger.exception('Unhandled error serving %s %s', request.method, request.path)
    return jsonify({'success': False, 'error': 'Internal server error'}), 500


# =============================================================================
# Health & Discovery
# =============================================================================

def health():
    """Health check with system info."""
    return jsonify({
        'status': 'online',
        'version': __version__,
        'hostname': socket.gethostname(),
        'platform': platform.system(),
        'python': sys.version.split()[0],
        'connections': _gateway().connection_count(),
        'timestamp': datetime.now().isoformat(),
    })


@relay.route('/info', methods=['GET'])
def relay_info():
    """Discovery endpoint polled by mobile clients."""
    return jsonify({
        'relay': True,
        'version': __version__,
        'ips': lan_addresses(),
    })


# =============================================================================
# Printer Operations
# =============================================================================

@relay.route('/connect', methods=['POST'])
def relay_connect():
    """Open or reuse the session to a printer."""
    body = _parse_body(ConnectRequest)
    printer = body.printer
    return jsonify(_gateway().connect(printer.id, printer.ip_address, printer.port))


@relay.route('/set-meta', methods=['POST'])
def relay_set_meta():
    """Record a printer address without opening a session."""
    body = _parse_body(ConnectRequest)
    printer = body.printer
    return jsonify(_gateway().set_meta(printer.id, printer.ip_address, printer.port))


@relay.route('/disconnect', methods=['POST'])
def relay_disconnect():
    """Close the session to a printer."""
    body = _parse_body(DisconnectRequest)
    return jsonify(_gateway().disconnect(body.printer_id))


@relay.route('/send-command', methods=['POST'])
def relay_send_command():
    """Send one command line and return the response."""
    body = _parse_body(SendCommandRequest)
    return jsonify(_gateway().send_command(body.printer_id, body.command))


@relay.route('/check-status', methods=['POST'])
def relay_check_status():
    """Reachability of printers (ICMP only, no Telnet session)."""
    body = _parse_body(CheckStatusRequest)
    printers = [p.model_dump(by_alias=True) for p in body.printers]
    return jsonify({'printers': _gateway().check_status(printers)})


# =============================================================================
# Embedded Server
# =============================================================================

class RelayServer:
    """Serves the relay on a background thread next to an in-process UI."""

    def __init__(self, gateway: LocalGateway, host: str = RELAY_HOST, port: int = RELAY_PORT):
        self.gateway = gateway
        self.host = host
        self.port = port
        self.app = create_app(gateway)
        self._server = None
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> 'RelayServer':
        if self.running:
            return self
        self._server = make_server(self.host, self.port, self.app, threaded=True)
        self.port = self._server.server_port
        self._thread = threading.Thread(target=self._server.serve_forever,
                                        name='cij-relay', daemon=True)
        self._thread.start()
        logger.info('Relay listening on http://%s:%s/relay', self.host, self.port)
        return self

    def stop(self):
        if not self.running:
            return
        self._server.shutdown()
        self._thread.join(timeout=5)
        self._server.server_close()
        self._thread = None
        logger.info('Relay stopped')


# =============================================================================
# Main
# =============================================================================

def main():
    """Run the relay service."""
    configure_logging(LOG_LEVEL, LOG_FORMAT)

    print("=" * 60)
    print("  CIJ Link Service")
    print("=" * 60)
    print(f"  Version: {__version__}")
    print(f"  Port: {RELAY_PORT}")
    print("=" * 60)
    print("  Relay Endpoints:")
    print("    GET  /health                          - Health check")
    print("    GET  /relay/info                      - Relay discovery")
    print("    POST /relay/connect                   - Open printer session")
    print("    POST /relay/set-meta                  - Register printer address")
    print("    POST /relay/disconnect                - Close printer session")
    print("    POST /relay/send-command              - Send command")
    print("    POST /relay/check-status              - Reachability probe")
    print("=" * 60)
    for address in lan_addresses():
        print(f"  Mobile clients: http://{address}:{RELAY_PORT}")
    print("=" * 60)

    gateway = LocalGateway().start()
    app = create_app(gateway)
    try:
        app.run(host=RELAY_HOST, port=RELAY_PORT, debug=DEBUG, threaded=True, use_reloader=False)
    finally:
        gateway.shutdown()


if __name__ == '__main__':
    main()
