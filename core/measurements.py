"""
Metric descriptors and measurements.

Descriptors are static metric identity; measurements are the values emitted
during one collection cycle.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from prometheus_client.core import GaugeMetricFamily


@dataclass(frozen=True)
class MetricDescriptor:
    """Name, help text and label names of one exposed gauge."""
    name: str
    documentation: str
    labels: tuple[str, ...] = ()

    def family(self) -> GaugeMetricFamily:
        return GaugeMetricFamily(self.name, self.documentation, labels=list(self.labels))


@dataclass(frozen=True)
class Measurement:
    """One (descriptor, value, label values) fact for the current cycle."""
    descriptor: MetricDescriptor
    value: float
    label_values: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if len(self.label_values) != len(self.descriptor.labels):
            raise ValueError(
                f"{self.descriptor.name} expects labels {self.descriptor.labels}, "
                f"got {self.label_values}"
            )


def build_metric_families(
    descriptors: Iterable[MetricDescriptor],
    measurements: Iterable[Measurement],
) -> Iterator[GaugeMetricFamily]:
    """Group measurements into gauge families.

    Families come out in descriptor order, samples in emission order.
    Descriptors without measurements produce no family.
    """
    families: dict[MetricDescriptor, GaugeMetricFamily] = {d: d.family() for d in descriptors}
    for measurement in measurements:
        family = families.get(measurement.descriptor)
        if family is None:
            raise ValueError(f"unknown descriptor {measurement.descriptor.name}")
        family.add_metric(list(measurement.label_values), measurement.value)

    for family in families.values():
        if family.samples:
            yield family
