from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Sequence

try:
    import dbus

    DBUS_AVAILABLE = True
except ImportError:  # pragma: no cover - dbus-python needs libdbus headers to build
    dbus = None  # type: ignore[assignment]
    DBUS_AVAILABLE = False

NETWORKD_BUS_NAME = "org.freedesktop.network1"
NETWORKD_OBJECT_PATH = "/org/freedesktop/network1"
MANAGER_INTERFACE = "org.freedesktop.network1.Manager"
LINK_INTERFACE = "org.freedesktop.network1.Link"
DHCP_SERVER_INTERFACE = "org.freedesktop.network1.DHCPServer"
PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"

# Positional layout of one ListLinks() entry; trailing fields are ignored.
LINK_RECORD_FIELDS: tuple[tuple[str, type], ...] = (
    ("index", int),
    ("name", str),
    ("path", str),
)

logger = logging.getLogger(__name__)


class NetworkdBusError(Exception):
    """Base class for errors talking to networkd over D-Bus."""


class BusConnectionError(NetworkdBusError):
    """The system bus could not be reached."""


class ListLinksError(NetworkdBusError):
    """Manager.ListLinks() failed or returned something that is not a list."""


class PropertyUnavailableError(NetworkdBusError):
    """A property could not be read from a link object."""


@dataclass(frozen=True)
class LinkRecord:
    """One network link as reported by networkd."""
    index: int
    name: str
    path: str


def decode_link_record(raw: Any) -> LinkRecord | None:
    """Decode one ListLinks() entry.

    Returns None when the entry does not match ``LINK_RECORD_FIELDS``.
    """
    if not isinstance(raw, (list, tuple)) or len(raw) < len(LINK_RECORD_FIELDS):
        return None

    values: dict[str, Any] = {}
    for (field_name, field_type), value in zip(LINK_RECORD_FIELDS, raw):
        # dbus.Boolean subclasses int
        if isinstance(value, bool) or not isinstance(value, field_type):
            return None
        values[field_name] = field_type(value)
    return LinkRecord(**values)


def decode_lease_list(value: Any) -> list[Sequence[Any]] | None:
    """Decode a DHCPServer.Leases value into a list of lease records."""
    if not isinstance(value, (list, tuple)):
        return None
    if not all(isinstance(entry, (list, tuple)) for entry in value):
        return None
    return list(value)


class NetworkdBus:
    """Read-only view of systemd-networkd over one D-Bus connection.

    The connection is owned by this object and closed by ``close()`` or on
    leaving a ``with`` block.
    """

    def __init__(self, connection: Any, timeout: float | None = None) -> None:
        self.connection = connection
        self.timeout = timeout
        self._closed = False

    def __enter__(self) -> NetworkdBus:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.connection.close()
        except Exception as exc:
            logger.debug(f"Error closing D-Bus connection: {exc}")

    def _call_kwargs(self, interface: str) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"dbus_interface": interface}
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        return kwargs

    def _object(self, path: str) -> Any:
        return self.connection.get_object(NETWORKD_BUS_NAME, path, introspect=False)

    def list_links(self) -> list[LinkRecord]:
        """Return the links networkd knows about, in daemon order.

        Entries that do not decode are logged and left out.
        """
        try:
            manager = self._object(NETWORKD_OBJECT_PATH)
            raw_links = manager.ListLinks(**self._call_kwargs(MANAGER_INTERFACE))
        except Exception as exc:
            raise ListLinksError(f"ListLinks failed: {exc}") from exc

        if not isinstance(raw_links, (list, tuple)):
            raise ListLinksError(f"ListLinks returned {type(raw_links).__name__}, expected a list")

        links: list[LinkRecord] = []
        for raw in raw_links:
            link = decode_link_record(raw)
            if link is None:
                logger.debug(f"Skipping undecodable link record: {raw!r}")
                continue
            links.append(link)
        return links

    def get_property(self, path: str, interface: str, name: str) -> Any:
        """Read ``interface.name`` from the networkd object at ``path``."""
        try:
            obj = self._object(path)
            return obj.Get(interface, name, **self._call_kwargs(PROPERTIES_INTERFACE))
        except Exception as exc:
            raise PropertyUnavailableError(f"{interface}.{name} on {path}: {exc}") from exc

    def get_dhcp_server_leases(self, link: LinkRecord) -> list[Sequence[Any]]:
        """Return the DHCP server leases of a link.

        Raises PropertyUnavailableError when the link has no DHCP server or the
        value is not a list of records.
        """
        value = self.get_property(link.path, DHCP_SERVER_INTERFACE, "Leases")
        leases = decode_lease_list(value)
        if leases is None:
            raise PropertyUnavailableError(
                f"{DHCP_SERVER_INTERFACE}.Leases on {link.path}: "
                f"undecodable value of type {type(value).__name__}"
            )
        return leases

    def get_link_state(self, link: LinkRecord, name: str) -> str:
        """Return a string state property (e.g. OperationalState) of a link."""
        value = self.get_property(link.path, LINK_INTERFACE, name)
        if not isinstance(value, str) or not value:
            raise PropertyUnavailableError(f"{LINK_INTERFACE}.{name} on {link.path}: empty or not a string")
        return str(value)


def connect_system_bus(timeout: float | None = None) -> NetworkdBus:
    """Open a private system bus connection for one collection cycle."""
    if not DBUS_AVAILABLE:
        raise BusConnectionError("dbus-python is not installed (pip install 'networkd-exporter[dbus]')")
    try:
        connection = dbus.SystemBus(private=True)
    except Exception as exc:
        raise BusConnectionError(f"could not get D-Bus connection: {exc}") from exc
    return NetworkdBus(connection, timeout=timeout)


def system_bus_factory(timeout: float | None = None) -> Callable[[], NetworkdBus]:
    """Build a zero-argument factory that opens a fresh bus per call."""
    def factory() -> NetworkdBus:
        return connect_system_bus(timeout=timeout)
    return factory
