"""Tests for the networkd D-Bus client."""
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))
if str(PROJECT_ROOT / "tests") not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT / "tests"))

from services import networkd_service
from services.networkd_service import (
    DHCP_SERVER_INTERFACE,
    LINK_INTERFACE,
    NETWORKD_BUS_NAME,
    NETWORKD_OBJECT_PATH,
    BusConnectionError,
    LinkRecord,
    ListLinksError,
    NetworkdBus,
    PropertyUnavailableError,
    decode_lease_list,
    decode_link_record,
)
from fake_networkd import FakeDBusException, link_path, make_connection


def test_decode_link_record():
    """Test decoding of ListLinks() entries."""
    assert decode_link_record((1, "lo", "/org/freedesktop/network1/link/_31")) == LinkRecord(
        index=1, name="lo", path="/org/freedesktop/network1/link/_31"
    )
    # trailing fields are ignored
    assert decode_link_record([2, "eth0", "/p", "extra", 7]) == LinkRecord(2, "eth0", "/p")


@pytest.mark.parametrize(
    "raw",
    [
        None,
        "eth0",
        (1, "eth0"),
        ("1", "eth0", "/p"),
        (1, 2, "/p"),
        (1, "eth0", None),
        (True, "eth0", "/p"),
    ],
)
def test_decode_link_record_rejects_bad_shapes(raw):
    """Test that malformed entries decode to None instead of raising."""
    assert decode_link_record(raw) is None


def test_decode_lease_list():
    """Test lease list decoding."""
    assert decode_lease_list([]) == []
    assert decode_lease_list([(1, [2]), [3, [4]]]) == [(1, [2]), [3, [4]]]
    assert decode_lease_list(()) == []
    assert decode_lease_list("abc") is None
    assert decode_lease_list(None) is None
    assert decode_lease_list([(1,), 5]) is None


def test_list_links_uses_manager_object():
    """Test that ListLinks is called on the manager with the manager interface."""
    connection = make_connection([(1, "lo", link_path(1)), (2, "eth0", link_path(2))])
    bus = NetworkdBus(connection)

    links = bus.list_links()

    assert [link.name for link in links] == ["lo", "eth0"]
    assert connection.requested == [(NETWORKD_BUS_NAME, NETWORKD_OBJECT_PATH)]
    name, kwargs = connection.objects[NETWORKD_OBJECT_PATH].calls[0]
    assert name == "ListLinks"
    assert kwargs == {"dbus_interface": "org.freedesktop.network1.Manager"}


def test_list_links_failure_raises_list_links_error():
    """Test that a D-Bus error is wrapped."""
    bus = NetworkdBus(make_connection(FakeDBusException("NoReply")))

    with pytest.raises(ListLinksError) as excinfo:
        bus.list_links()

    assert isinstance(excinfo.value.__cause__, FakeDBusException)


def test_list_links_non_list_response():
    """Test that a non-list ListLinks() reply is a ListLinksError."""
    bus = NetworkdBus(make_connection(42))

    with pytest.raises(ListLinksError):
        bus.list_links()


def test_get_dhcp_server_leases():
    """Test lease lookup for a link with and without a DHCP server."""
    connection = make_connection(
        [],
        {
            link_path(2): {(DHCP_SERVER_INTERFACE, "Leases"): [(1, [1], [10, 0, 0, 2])]},
            link_path(3): {},
        },
    )
    bus = NetworkdBus(connection, timeout=1.0)

    assert len(bus.get_dhcp_server_leases(LinkRecord(2, "eth0", link_path(2)))) == 1
    with pytest.raises(PropertyUnavailableError):
        bus.get_dhcp_server_leases(LinkRecord(3, "eth1", link_path(3)))

    _, kwargs = connection.objects[link_path(2)].calls[0]
    assert kwargs == {"dbus_interface": "org.freedesktop.DBus.Properties", "timeout": 1.0}


def test_get_link_state():
    """Test string state property reads."""
    connection = make_connection([], {link_path(2): {(LINK_INTERFACE, "OperationalState"): "routable"}})
    bus = NetworkdBus(connection)
    link = LinkRecord(2, "eth0", link_path(2))

    assert bus.get_link_state(link, "OperationalState") == "routable"
    with pytest.raises(PropertyUnavailableError):
        bus.get_link_state(link, "CarrierState")


def test_close_is_idempotent():
    """Test that the connection is closed exactly once."""
    connection = make_connection([])
    with NetworkdBus(connection) as bus:
        pass
    bus.close()

    assert connection.closed == 1


def test_connect_system_bus_without_dbus(monkeypatch):
    """Test that a missing dbus-python surfaces as a connection error."""
    monkeypatch.setattr(networkd_service, "DBUS_AVAILABLE", False)

    with pytest.raises(BusConnectionError):
        networkd_service.connect_system_bus()


def test_connect_system_bus_failure(monkeypatch):
    """Test that a failing SystemBus() is wrapped."""
    class FailingDBus:
        @staticmethod
        def SystemBus(private=False):
            raise FakeDBusException("org.freedesktop.DBus.Error.FileNotFound")

    monkeypatch.setattr(networkd_service, "DBUS_AVAILABLE", True)
    monkeypatch.setattr(networkd_service, "dbus", FailingDBus)

    with pytest.raises(BusConnectionError):
        networkd_service.connect_system_bus()


def test_connect_system_bus_private_connection(monkeypatch):
    """Test that each cycle gets its own private connection."""
    opened = []

    class RecordingDBus:
        @staticmethod
        def SystemBus(private=False):
            opened.append(private)
            return make_connection([])

    monkeypatch.setattr(networkd_service, "DBUS_AVAILABLE", True)
    monkeypatch.setattr(networkd_service, "dbus", RecordingDBus)

    factory = networkd_service.system_bus_factory(timeout=3.0)
    first, second = factory(), factory()

    assert opened == [True, True]
    assert first.connection is not second.connection
    assert first.timeout == 3.0
