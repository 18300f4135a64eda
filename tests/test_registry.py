"""Tests for the connection registry."""

from types import SimpleNamespace

import pytest

from cij_link_service.link import ConnectionRegistry
from cij_link_service.models import PrinterEndpoint


def conn(printer_id):
    return SimpleNamespace(owner_id=printer_id)


def test_put_and_get():
    registry = ConnectionRegistry()
    c = conn(1)
    registry.put(c)
    assert registry.get(1) is c
    assert 1 in registry
    assert len(registry) == 1


def test_second_connection_for_same_printer_is_rejected():
    registry = ConnectionRegistry()
    first = conn(1)
    registry.put(first)
    registry.put(first)  # same object is fine
    with pytest.raises(RuntimeError):
        registry.put(conn(1))
    assert registry.get(1) is first


def test_pop_only_matching_connection():
    registry = ConnectionRegistry()
    c = conn(1)
    registry.put(c)
    assert registry.pop(1, conn(1)) is None
    assert registry.get(1) is c
    assert registry.pop(1, c) is c
    assert registry.pop(1) is None


def test_addresses_survive_connection_removal():
    registry = ConnectionRegistry()
    endpoint = PrinterEndpoint(1, '10.0.0.5', 23)
    registry.remember(endpoint)
    registry.put(conn(1))
    registry.pop(1)
    assert registry.endpoint_for(1) == endpoint
    assert registry.endpoint_for(2) is None


def test_clear_drops_everything():
    registry = ConnectionRegistry()
    registry.remember(PrinterEndpoint(1, '10.0.0.5', 23))
    a, b = conn(1), conn(2)
    registry.put(a)
    registry.put(b)
    removed = registry.clear()
    assert set(map(id, removed)) == {id(a), id(b)}
    assert len(registry) == 0
    assert registry.endpoint_for(1) is None
