"""Tests for endpoint/status records and request schemas."""

import pytest
from pydantic import ValidationError

from cij_link_service.models import (
    CheckStatusRequest,
    ConnectRequest,
    DisconnectRequest,
    PrinterEndpoint,
    SendCommandRequest,
    StatusResult,
)


def test_endpoint_wire_format():
    endpoint = PrinterEndpoint.from_dict({'id': '3', 'ipAddress': '10.0.0.7', 'port': 2323})
    assert endpoint == PrinterEndpoint(3, '10.0.0.7', 2323)
    assert endpoint.to_dict() == {'id': 3, 'ipAddress': '10.0.0.7', 'port': 2323}
    assert endpoint.address == '10.0.0.7:2323'


def test_endpoint_defaults_to_telnet_port():
    assert PrinterEndpoint.from_dict({'id': 1, 'ipAddress': '10.0.0.5'}).port == 23


def test_status_result_omits_unset_fields():
    assert StatusResult.offline(2, 'Ping timeout').to_dict() == {
        'id': 2, 'isAvailable': False, 'status': 'offline', 'error': 'Ping timeout'}
    assert StatusResult.online(1, 0.4).to_dict() == {
        'id': 1, 'isAvailable': True, 'status': 'ready', 'responseTime': 0.4}


def test_connect_request():
    body = ConnectRequest.model_validate({'printer': {'id': 1, 'ipAddress': ' 10.0.0.5 ', 'port': 23}})
    assert body.printer.to_endpoint() == PrinterEndpoint(1, '10.0.0.5', 23)


@pytest.mark.parametrize('printer', [
    {'ipAddress': '10.0.0.5'},
    {'id': 1},
    {'id': 1, 'ipAddress': '   '},
    {'id': 1, 'ipAddress': '10.0.0.5', 'port': 70000},
    {'id': 'one', 'ipAddress': '10.0.0.5'},
])
def test_connect_request_rejects_bad_printer(printer):
    with pytest.raises(ValidationError):
        ConnectRequest.model_validate({'printer': printer})


def test_disconnect_request_uses_camel_case():
    assert DisconnectRequest.model_validate({'printerId': 4}).printer_id == 4
    with pytest.raises(ValidationError):
        DisconnectRequest.model_validate({})


def test_send_command_strips_trailing_terminator():
    body = SendCommandRequest.model_validate({'printerId': 1, 'command': '^VV\r\n'})
    assert body.command == '^VV'


@pytest.mark.parametrize('command', ['', '   ', '^VV\r\n^SU', 'a\nb'])
def test_send_command_rejects_bad_commands(command):
    with pytest.raises(ValidationError):
        SendCommandRequest.model_validate({'printerId': 1, 'command': command})


def test_check_status_request_defaults_to_empty():
    assert CheckStatusRequest.model_validate({}).printers == []
    body = CheckStatusRequest.model_validate({'printers': [{'id': 1, 'ipAddress': '10.0.0.5'}]})
    assert body.printers[0].model_dump(by_alias=True) == {'id': 1, 'ipAddress': '10.0.0.5', 'port': 23}
