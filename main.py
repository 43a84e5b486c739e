from __future__ import annotations

import logging
import signal
import sys
import threading
from typing import Any

from prometheus_client import CollectorRegistry, PlatformCollector, ProcessCollector
from rich.console import Console

from config import Settings
from core import NetworkdCollector
from infrastructure import MetricsServer, start_metrics_server


def build_registry(settings: Settings, collector: NetworkdCollector) -> CollectorRegistry:
    """Create a registry holding the networkd collector (and process metrics if enabled)."""
    registry = CollectorRegistry(auto_describe=True)
    registry.register(collector)
    if settings.ENABLE_PROCESS_METRICS:
        ProcessCollector(registry=registry)
        PlatformCollector(registry=registry)
    return registry


class ExporterApp:
    def __init__(self, settings: Settings, console: Console | None = None) -> None:
        self.settings = settings
        self.console = console or Console(stderr=True)
        self.collector = NetworkdCollector.from_settings(settings, logger=logging.getLogger("networkd_exporter"))
        self.registry = build_registry(settings, self.collector)
        self.server: MetricsServer | None = None
        self.stop_event = threading.Event()

    def _install_signal_handlers(self) -> None:
        def handler(sig: int, frame: Any) -> None:
            logging.info(f"Received signal {sig}, shutting down")
            self.stop_event.set()

        signal.signal(signal.SIGINT, handler)
        signal.signal(signal.SIGTERM, handler)

    def start(self) -> bool:
        self.server = start_metrics_server(
            self.registry,
            addr=self.settings.METRICS_ADDR,
            port=self.settings.METRICS_PORT,
            metrics_path=self.settings.METRICS_PATH,
        )
        return self.server is not None

    def stop(self) -> None:
        self.stop_event.set()
        if self.server is not None:
            self.server.stop()
            self.server = None

    def run(self) -> int:
        self._install_signal_handlers()

        if not self.start():
            self.console.print("[bold red]Metrics server failed to start, see log for details[/bold red]")
            return 1

        self.console.print(
            f"[bold green]>>> networkd exporter {self.settings.VERSION} listening on "
            f"http://{self.settings.METRICS_ADDR}:{self.server.port}{self.settings.METRICS_PATH} <<<[/bold green]"
        )
        if self.settings.ENABLE_LINK_STATE_METRICS:
            self.console.print("[dim]Link state metrics enabled[/dim]")

        try:
            self.stop_event.wait()
        finally:
            self.stop()
            self.console.print("[dim]Stopped[/dim]")
        return 0


def run(settings: Settings) -> int:
    app = ExporterApp(settings)
    return app.run()


def main() -> None:
    sys.exit(run(Settings()))


__all__ = ["ExporterApp", "build_registry", "main", "run"]
