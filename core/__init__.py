"""
Core collection logic.

- NetworkdCollector: one independent networkd snapshot per scrape
- MetricDescriptor / Measurement: static metric identity and emitted values
"""

from .measurements import Measurement, MetricDescriptor, build_metric_families
from .networkd_collector import (
    LEASES_DESCRIPTOR,
    LINK_STATE_DESCRIPTORS,
    LINKS_DESCRIPTOR,
    NetworkdCollector,
)

__all__ = [
    "LEASES_DESCRIPTOR",
    "LINK_STATE_DESCRIPTORS",
    "LINKS_DESCRIPTOR",
    "Measurement",
    "MetricDescriptor",
    "NetworkdCollector",
    "build_metric_families",
]
