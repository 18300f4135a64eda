"""
CIJ Link Service Configuration
"""

import os

# =============================================================================
# Relay Server Configuration
# =============================================================================

RELAY_PORT = int(os.environ.get('CIJ_RELAY_PORT', 8766))
RELAY_HOST = os.environ.get('CIJ_RELAY_HOST', '0.0.0.0')
DEBUG = os.environ.get('CIJ_DEBUG', 'false').lower() == 'true'

# =============================================================================
# Logging
# =============================================================================

LOG_LEVEL = os.environ.get('CIJ_LOG_LEVEL', 'INFO').upper()
LOG_FORMAT = os.environ.get('CIJ_LOG_FORMAT', 'text').lower()  # text, json

# =============================================================================
# Printer Connection Defaults
# =============================================================================

# Telnet port used by the printer firmware
TELNET_PORT = 23

# Seconds to wait after TCP connect before the session is usable
HANDSHAKE_SETTLE = float(os.environ.get('CIJ_HANDSHAKE_SETTLE', 0.3))

# Connect timeouts (seconds)
CONNECT_TIMEOUT = float(os.environ.get('CIJ_CONNECT_TIMEOUT', 10))
EPHEMERAL_CONNECT_TIMEOUT = float(os.environ.get('CIJ_EPHEMERAL_CONNECT_TIMEOUT', 5))

# TCP keep-alive: idle seconds before the first probe, and probe interval
KEEPALIVE_IDLE = int(os.environ.get('CIJ_KEEPALIVE_IDLE', 10))
KEEPALIVE_INTERVAL = 5

# =============================================================================
# Response Completion
# =============================================================================

# Prompt character that ends most firmware responses
PROMPT_CHAR = '>'

# Quiet period that finalizes a response (seconds)
IDLE_WINDOW = float(os.environ.get('CIJ_IDLE_WINDOW', 0.22))

# Hard ceiling per command (seconds)
EPHEMERAL_CEILING = float(os.environ.get('CIJ_EPHEMERAL_CEILING', 2.2))
INTERACTIVE_CEILING = float(os.environ.get('CIJ_INTERACTIVE_CEILING', 5.0))

# =============================================================================
# Reachability Probe
# =============================================================================

PROBE_TIMEOUT = float(os.environ.get('CIJ_PROBE_TIMEOUT', 1.2))
PING_EXECUTABLE = os.environ.get('CIJ_PING', 'ping')

# Seconds a blocking gateway call waits on the core loop before giving up
GATEWAY_CALL_TIMEOUT = 30
