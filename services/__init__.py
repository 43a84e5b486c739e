"""networkd D-Bus services package."""

from .networkd_service import (
    BusConnectionError,
    LinkRecord,
    ListLinksError,
    NetworkdBus,
    NetworkdBusError,
    PropertyUnavailableError,
    connect_system_bus,
    system_bus_factory,
)

__all__ = [
    "BusConnectionError",
    "LinkRecord",
    "ListLinksError",
    "NetworkdBus",
    "NetworkdBusError",
    "PropertyUnavailableError",
    "connect_system_bus",
    "system_bus_factory",
]
