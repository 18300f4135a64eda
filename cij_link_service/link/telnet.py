"""
Telnet Framer
=============

Strips Telnet control sequences from inbound chunks and builds the reply that
refuses every option the printer offers or requests.

The printer firmware opens each session with IAC negotiation and drops the
socket when nobody answers, so every DO gets a WONT and every WILL gets a
DONT. DONT/WONT need no answer.

Recognised sequences:
    IAC IAC                 - escaped 0xFF data byte
    IAC <cmd> <option>      - DO, DONT, WILL, WONT
    IAC SB ... IAC SE       - subnegotiation block (payload skipped)
    IAC <cmd>               - any other two-byte command (NOP, GA, ...)

No state is kept between chunks. A sequence split across two chunks is cut at
the chunk boundary.
"""

from typing import Tuple

IAC = 0xFF
DONT = 0xFE
DO = 0xFD
WONT = 0xFC
WILL = 0xFB
SB = 0xFA
SE = 0xF0

OPTION_COMMANDS = (DO, DONT, WILL, WONT)

# Refusal sent back for each request
REFUSALS = {
    DO: WONT,
    WILL: DONT,
}


def negotiate(chunk: bytes) -> Tuple[bytes, bytes]:
    """
    Split a chunk into protocol text and a negotiation reply.

    Args:
        chunk: Raw bytes as read from the socket

    Returns:
        (payload, reply) - payload with all control sequences removed, and the
        bytes to write back on the same connection (empty if nothing to refuse)
    """
    if IAC not in chunk:
        return chunk, b''

    payload = bytearray()
    reply = bytearray()
    i = 0
    n = len(chunk)

    while i < n:
        byte = chunk[i]
        if byte != IAC:
            payload.append(byte)
            i += 1
            continue

        if i + 1 >= n:
            break  # lone IAC at chunk end

        cmd = chunk[i + 1]

        if cmd == IAC:
            payload.append(IAC)
            i += 2
        elif cmd in OPTION_COMMANDS:
            if i + 2 >= n:
                break  # option byte is in the next chunk
            option = chunk[i + 2]
            if cmd in REFUSALS:
                reply.extend((IAC, REFUSALS[cmd], option))
            i += 3
        elif cmd == SB:
            i = _skip_subnegotiation(chunk, i + 2)
        else:
            i += 2

    return bytes(payload), bytes(reply)


def _skip_subnegotiation(chunk: bytes, start: int) -> int:
    """Return the index just past the IAC SE closing a block, or len(chunk)."""
    j = start
    n = len(chunk)
    while j < n - 1:
        if chunk[j] == IAC:
            if chunk[j + 1] == SE:
                return j + 2
            # IAC IAC inside the block is escaped payload
            j += 2
            continue
        j += 1
    return n


def has_control(chunk: bytes) -> bool:
    """True if the chunk carries any Telnet control byte."""
    return IAC in chunk
