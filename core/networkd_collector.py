"""
networkd collector - snapshots systemd-networkd state for Prometheus.

One call to ``collect_into`` is one independent cycle: connect, list links,
read per-link DHCP server leases, emit, disconnect. Nothing is kept between
cycles.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING

from prometheus_client.core import GaugeMetricFamily

from services.networkd_service import (
    BusConnectionError,
    LinkRecord,
    ListLinksError,
    NetworkdBus,
    NetworkdBusError,
    PropertyUnavailableError,
    system_bus_factory,
)

from .measurements import Measurement, MetricDescriptor, build_metric_families

if TYPE_CHECKING:
    from config.settings_model import Settings

NAMESPACE = "networkd"

LINKS_DESCRIPTOR = MetricDescriptor(
    f"{NAMESPACE}_links_total",
    "networkd links",
)
LEASES_DESCRIPTOR = MetricDescriptor(
    f"{NAMESPACE}_dhcpserver_leases_total",
    "networkd DHCP server leases",
    ("iface",),
)

# Link property name -> descriptor
LINK_STATE_DESCRIPTORS: dict[str, MetricDescriptor] = {
    "OperationalState": MetricDescriptor(
        f"{NAMESPACE}_link_operational_state",
        "networkd link operational state (1 for the current state)",
        ("iface", "state"),
    ),
    "CarrierState": MetricDescriptor(
        f"{NAMESPACE}_link_carrier_state",
        "networkd link carrier state (1 for the current state)",
        ("iface", "state"),
    ),
    "OnlineState": MetricDescriptor(
        f"{NAMESPACE}_link_online_state",
        "networkd link online state (1 for the current state)",
        ("iface", "state"),
    ),
}

Sink = Callable[[Measurement], None]


class NetworkdCollector:
    """
    Prometheus collector exposing networkd link and DHCP lease counts.

    Args:
        logger: Logger for cycle diagnostics (defaults to this module's logger)
        bus_factory: Zero-argument callable returning a fresh ``NetworkdBus``
        timeout: Per-call D-Bus timeout in seconds, used by the default factory
        link_state_metrics: Also expose per-link state gauges
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        bus_factory: Callable[[], NetworkdBus] | None = None,
        timeout: float | None = None,
        link_state_metrics: bool = False,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.bus_factory = bus_factory or system_bus_factory(timeout=timeout)
        self.link_state_metrics = link_state_metrics

    @classmethod
    def from_settings(cls, settings: Settings, logger: logging.Logger | None = None) -> NetworkdCollector:
        return cls(
            logger=logger,
            timeout=settings.DBUS_TIMEOUT_SECONDS,
            link_state_metrics=settings.ENABLE_LINK_STATE_METRICS,
        )

    def descriptors(self) -> tuple[MetricDescriptor, ...]:
        """Static descriptors, available before any value is collected."""
        descriptors = (LEASES_DESCRIPTOR, LINKS_DESCRIPTOR)
        if self.link_state_metrics:
            descriptors += tuple(LINK_STATE_DESCRIPTORS.values())
        return descriptors

    def describe(self) -> Iterator[GaugeMetricFamily]:
        for descriptor in self.descriptors():
            yield descriptor.family()

    def collect(self) -> Iterator[GaugeMetricFamily]:
        measurements: list[Measurement] = []
        try:
            self.collect_into(measurements.append)
        except NetworkdBusError as exc:
            self.logger.error(f"Error collecting metrics: {exc}")
        yield from build_metric_families(self.descriptors(), measurements)

    def collect_into(self, sink: Sink) -> None:
        """Run one collection cycle, pushing measurements into ``sink``.

        Raises:
            BusConnectionError: the system bus could not be reached. Nothing
                has been emitted in that case.
        """
        try:
            bus = self.bus_factory()
        except BusConnectionError:
            raise
        except Exception as exc:
            raise BusConnectionError(f"could not get D-Bus connection: {exc}") from exc

        with bus:
            try:
                links = bus.list_links()
            except ListLinksError as exc:
                self.logger.warning(f"Unable to list networkd links: {exc}")
                return

            sink(Measurement(LINKS_DESCRIPTOR, float(len(links))))

            for link in links:
                self._collect_leases(bus, link, sink)
                if self.link_state_metrics:
                    self._collect_link_states(bus, link, sink)

    def _collect_leases(self, bus: NetworkdBus, link: LinkRecord, sink: Sink) -> None:
        try:
            leases = bus.get_dhcp_server_leases(link)
        except PropertyUnavailableError as exc:
            self.logger.debug(f"No leases found for interface {link.name}: {exc}")
            return
        sink(Measurement(LEASES_DESCRIPTOR, float(len(leases)), (link.name,)))

    def _collect_link_states(self, bus: NetworkdBus, link: LinkRecord, sink: Sink) -> None:
        for prop, descriptor in LINK_STATE_DESCRIPTORS.items():
            try:
                state = bus.get_link_state(link, prop)
            except PropertyUnavailableError as exc:
                self.logger.debug(f"No {prop} for interface {link.name}: {exc}")
                continue
            sink(Measurement(descriptor, 1.0, (link.name, state)))
