"""
CIJ Link Service
================

Live Telnet sessions to continuous-inkjet printers, shared between an
in-process control surface and a LAN relay for companion mobile clients.

Usage:
    python -m cij_link_service

Relay Endpoints:
    GET  /relay/info          - Relay discovery (version, LAN addresses)
    POST /relay/connect       - Open or reuse a printer session
    POST /relay/set-meta      - Register a printer address
    POST /relay/disconnect    - Close a printer session
    POST /relay/send-command  - Send one command, return the response
    POST /relay/check-status  - Reachability probe (ICMP, no Telnet)
"""

__version__ = '1.0.0'
__author__ = 'CIJ Link Developers'
