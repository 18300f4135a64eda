"""Tests for the blocking in-process gateway."""

import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from cij_link_service.gateway import CoreLoop, LocalGateway
from cij_link_service.link import probe

from conftest import FakePrinter, fast_link


async def silent(printer, line, writer):
    pass


@pytest.fixture
def gateway():
    gw = LocalGateway(link=fast_link(), call_timeout=5).start()
    yield gw
    gw.shutdown()


@pytest.fixture
def start_printer(gateway):
    """Start fake printers on the gateway's own loop."""
    started = []

    def factory(**kwargs) -> FakePrinter:
        fake = gateway.loop.call(FakePrinter(**kwargs).start())
        started.append(fake)
        return fake

    yield factory

    for fake in started:
        gateway.loop.call(fake.stop())


def closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


def test_core_loop_call_requires_running_loop():
    loop = CoreLoop()

    async def noop():
        return 1

    with pytest.raises(RuntimeError):
        loop.call(noop())

    loop.start()
    try:
        assert loop.call(noop()) == 1
    finally:
        loop.stop()
    assert not loop.running


def test_connect_send_disconnect(gateway, start_printer):
    fake = start_printer()

    assert gateway.connect(1, '127.0.0.1', fake.port) == {'success': True, 'reused': False}
    assert gateway.connect(1, '127.0.0.1', fake.port) == {'success': True, 'reused': True}
    assert gateway.connection_count() == 1

    assert gateway.send_command(1, '^VV') == {'success': True, 'response': '^VV OK\r\n>'}

    assert gateway.disconnect(1) == {'success': True}
    assert gateway.connection_count() == 0
    assert fake.sessions == 1


def test_disconnect_unknown_printer_succeeds(gateway):
    assert gateway.disconnect(99) == {'success': True}


def test_connect_refused(gateway):
    result = gateway.connect(1, '127.0.0.1', closed_port())
    assert result['success'] is False
    assert result['errorKind'] == 'ConnectRefused'
    assert gateway.connection_count() == 0


@pytest.mark.parametrize('args', [
    (1, '', 23),
    (1, '10.0.0.5', 0),
    ('printer', '10.0.0.5', 23),
])
def test_connect_rejects_bad_arguments(gateway, args):
    result = gateway.connect(*args)
    assert result['success'] is False
    assert result['errorKind'] == 'InvalidRequestBody'


def test_send_command_rejects_multiline(gateway):
    result = gateway.send_command(1, '^VV\r\n^SU')
    assert result['errorKind'] == 'InvalidRequestBody'


def test_send_command_without_address(gateway):
    result = gateway.send_command(7, '^VV')
    assert result == {'success': False, 'error': 'Printer 7 not connected',
                      'errorKind': 'NotConnected'}


def test_set_meta_enables_ephemeral_commands(gateway, start_printer):
    fake = start_printer()

    assert gateway.set_meta(2, '127.0.0.1', fake.port) == {'success': True}
    assert fake.sessions == 0

    assert gateway.send_command(2, '^SU') == {'success': True, 'response': '^SU OK\r\n>'}
    assert gateway.connection_count() == 0
    assert fake.sessions == 1


def test_command_timeout_is_reported(gateway, start_printer):
    fake = start_printer(responder=silent)
    gateway.connect(1, '127.0.0.1', fake.port)

    result = gateway.send_command(1, '^VV')
    assert result['success'] is False
    assert result['errorKind'] == 'CommandTimeout'


def test_gateway_call_timeout():
    gw = LocalGateway(link=fast_link(), call_timeout=0.2).start()
    try:
        fake = gw.loop.call(FakePrinter(responder=silent).start())
        try:
            gw.connect(1, '127.0.0.1', fake.port)
            result = gw.send_command(1, '^VV')
            assert result == {'success': False, 'error': 'Timed out waiting for printer link',
                              'errorKind': 'GatewayTimeout'}
        finally:
            gw.loop.call(fake.stop())
    finally:
        gw.shutdown()


def test_concurrent_callers_share_one_session(gateway, start_printer):
    fake = start_printer()

    with ThreadPoolExecutor(max_workers=6) as pool:
        results = list(pool.map(lambda _: gateway.connect(1, '127.0.0.1', fake.port), range(6)))

    assert all(r['success'] for r in results)
    assert [r['reused'] for r in results].count(False) == 1
    assert fake.sessions == 1
    assert gateway.connection_count() == 1


def test_check_status_keeps_order_and_reports_bad_entries(gateway, monkeypatch):
    async def ping_host(host, timeout):
        if host == '10.0.0.9':
            raise probe.ProbeError('Host unreachable')
        return 0.7

    monkeypatch.setattr(probe, 'ping_host', ping_host)

    results = gateway.check_status([
        {'id': 1, 'ipAddress': '10.0.0.1', 'port': 23},
        {'id': 2},
        {'id': 3, 'ipAddress': '10.0.0.9'},
        'garbage',
    ])

    assert results[0] == {'id': 1, 'isAvailable': True, 'status': 'ready', 'responseTime': 0.7}
    assert results[1]['id'] == 2
    assert results[1]['isAvailable'] is False
    assert 'ipAddress' in results[1]['error']
    assert results[2] == {'id': 3, 'isAvailable': False, 'status': 'offline',
                          'error': 'Host unreachable'}
    assert results[3]['id'] is None
    assert results[3]['isAvailable'] is False


def test_check_status_empty(gateway):
    assert gateway.check_status([]) == []


def test_connection_lost_listener(gateway, start_printer):
    fake = start_printer()
    lost = []
    fired = threading.Event()

    def on_lost(printer_id):
        lost.append(printer_id)
        fired.set()

    gateway.add_connection_lost_listener(on_lost)
    gateway.connect(4, '127.0.0.1', fake.port)
    gateway.loop.call_soon(fake.drop)

    assert fired.wait(2)
    assert lost == [4]
    assert gateway.connection_count() == 0


def test_shutdown_closes_sessions(start_printer, gateway):
    fake = start_printer()
    gw = LocalGateway(link=fast_link(), loop=gateway.loop)
    gw.connect(1, '127.0.0.1', fake.port)
    assert gw.connection_count() == 1

    gw.loop.call(gw.link.shutdown())
    assert gw.connection_count() == 0


@pytest.fixture
def busy_gateway():
    gw = LocalGateway(link=fast_link(), call_timeout=0.2).start()
    yield gw
    gw.shutdown()


def stall(gateway, seconds=0.5):
    """Block the core loop so gateway calls time out."""
    gateway.loop.call_soon(time.sleep, seconds)


def test_disconnect_succeeds_while_link_is_busy(busy_gateway):
    fake = busy_gateway.loop.call(FakePrinter().start())
    try:
        busy_gateway.connect(1, '127.0.0.1', fake.port)
        stall(busy_gateway)

        assert busy_gateway.disconnect(1) == {'success': True}

        time.sleep(0.5)
        assert busy_gateway.connection_count() == 0
    finally:
        busy_gateway.loop.call(fake.stop())


def test_set_meta_reports_busy_link(busy_gateway):
    stall(busy_gateway)
    assert busy_gateway.set_meta(1, '10.0.0.5') == {
        'success': False, 'error': 'Timed out waiting for printer link',
        'errorKind': 'GatewayTimeout'}


def test_check_status_reports_busy_link_offline(busy_gateway):
    stall(busy_gateway)
    assert busy_gateway.check_status([{'id': 1, 'ipAddress': '10.0.0.5'}]) == [
        {'id': 1, 'isAvailable': False, 'status': 'offline',
         'error': 'Timed out waiting for printer link'}]
