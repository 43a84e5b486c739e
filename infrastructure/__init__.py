from __future__ import annotations

"""Infrastructure layer for the metrics endpoint."""

from .metrics import MetricsServer, start_metrics_server

__all__ = [
    "MetricsServer",
    "start_metrics_server",
]
