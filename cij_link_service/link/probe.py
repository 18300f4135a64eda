"""
Reachability Probe
==================

Checks whether printers answer on the network without touching their Telnet
port. Opening a TCP session makes the firmware flash its front panel and can
knock the operator's own session off, so availability is judged from a single
ICMP echo sent by the system ``ping`` executable.
"""

import asyncio
import logging
import math
import platform
import re
import time
from typing import Iterable, List, Optional

from ..config import PING_EXECUTABLE, PROBE_TIMEOUT
from ..models import PrinterEndpoint, StatusResult

logger = logging.getLogger(__name__)

# "time=0.431 ms" (Linux/macOS), "time<1ms" / "Zeit=3ms" (Windows)
RTT_PATTERN = re.compile(r'(?:time|zeit|temps|tiempo)[=<]\s*([\d.,]+)\s*ms', re.IGNORECASE)


class ProbeError(Exception):
    """Host did not answer the echo request."""


def ping_command(host: str, timeout: float, system: str = None) -> List[str]:
    """Build the argv for one echo request bounded by timeout seconds."""
    system = (system or platform.system()).lower()
    if system == 'windows':
        return [PING_EXECUTABLE, '-n', '1', '-w', str(max(1, int(timeout * 1000))), host]
    if system == 'darwin':
        return [PING_EXECUTABLE, '-n', '-c', '1', '-W', str(max(1, int(timeout * 1000))), host]
    return [PING_EXECUTABLE, '-n', '-c', '1', '-W', str(max(1, math.ceil(timeout))), host]


def parse_rtt(output: str) -> Optional[float]:
    """Round-trip time in milliseconds from ping output, if present."""
    match = RTT_PATTERN.search(output)
    if not match:
        return None
    try:
        return float(match.group(1).replace(',', '.'))
    except ValueError:
        return None


async def ping_host(host: str, timeout: float = PROBE_TIMEOUT) -> float:
    """
    Send one ICMP echo request.

    Args:
        host: IP address or hostname
        timeout: Seconds before the host counts as unreachable

    Returns:
        Round-trip time in milliseconds

    Raises:
        ProbeError: Host unreachable, timed out, or ping unavailable
    """
    if not host or host.startswith('-'):
        raise ProbeError(f'Invalid address: {host!r}')

    started = time.monotonic()
    try:
        proc = await asyncio.create_subprocess_exec(
            *ping_command(host, timeout),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except FileNotFoundError:
        raise ProbeError(f'{PING_EXECUTABLE} executable not found')
    except OSError as e:
        raise ProbeError(f'Cannot run {PING_EXECUTABLE}: {e}')

    try:
        stdout, _ = await asyncio.wait_for(proc.communicate(), timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise ProbeError('Ping timeout')

    elapsed = (time.monotonic() - started) * 1000
    output = stdout.decode('utf-8', errors='replace') if stdout else ''

    if proc.returncode != 0:
        raise ProbeError('Host unreachable')

    rtt = parse_rtt(output)
    return round(rtt if rtt is not None else elapsed, 1)


async def probe(endpoint: PrinterEndpoint, timeout: float = PROBE_TIMEOUT) -> StatusResult:
    """Reachability of one printer as a StatusResult."""
    try:
        rtt = await ping_host(endpoint.ip_address, timeout)
    except ProbeError as e:
        logger.debug('Printer %s at %s offline: %s', endpoint.id, endpoint.ip_address, e)
        return StatusResult.offline(endpoint.id, str(e))
    return StatusResult.online(endpoint.id, rtt)


async def check_status(endpoints: Iterable[PrinterEndpoint],
                       timeout: float = PROBE_TIMEOUT) -> List[StatusResult]:
    """Probe all printers concurrently, results in request order."""
    endpoints = list(endpoints)
    if not endpoints:
        return []
    return list(await asyncio.gather(*(probe(e, timeout) for e in endpoints)))
