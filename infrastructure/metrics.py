from __future__ import annotations

"""Prometheus metrics HTTP server."""

import base64
import json
import logging
import os
import secrets
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

_LANDING_PAGE = """<html>
<head><title>networkd exporter</title></head>
<body>
<h1>networkd exporter</h1>
<p><a href="{path}">Metrics</a></p>
</body>
</html>
"""


def _get_metrics_auth_credentials() -> tuple[str, str] | None:
    """Get metrics auth credentials from environment variables.

    Returns:
        Tuple of (username, password) if METRICS_AUTH_USER and METRICS_AUTH_PASS are set,
        None otherwise.
    """
    user = os.environ.get("METRICS_AUTH_USER")
    password = os.environ.get("METRICS_AUTH_PASS")
    if user and password:
        return (user, password)
    return None


def _check_basic_auth(auth_header: str | None, credentials: tuple[str, str]) -> bool:
    """Check if request has valid basic auth header.

    Args:
        auth_header: The Authorization header value
        credentials: Tuple of (username, password)

    Returns:
        True if valid credentials provided, False otherwise.
    """
    if not auth_header:
        return False

    try:
        scheme, encoded = auth_header.split(" ", 1)
        if scheme.lower() != "basic":
            return False
        decoded = base64.b64decode(encoded).decode("utf-8")
        username, password = decoded.split(":", 1)
        return (
            secrets.compare_digest(username, credentials[0])
            and secrets.compare_digest(password, credentials[1])
        )
    except (ValueError, UnicodeDecodeError):
        return False


class MetricsHTTPServer(ThreadingHTTPServer):
    """HTTP server carrying the registry and path it exposes."""

    daemon_threads = True

    def __init__(self, address: tuple[str, int], registry: CollectorRegistry, metrics_path: str) -> None:
        if ":" in address[0]:
            self.address_family = socket.AF_INET6
        super().__init__(address, AuthenticatedMetricsHandler)
        self.registry = registry
        self.metrics_path = metrics_path


class AuthenticatedMetricsHandler(BaseHTTPRequestHandler):
    """Metrics handler with optional basic auth."""

    server: MetricsHTTPServer

    def do_GET(self) -> None:
        """Handle GET requests for metrics."""
        credentials = _get_metrics_auth_credentials()

        # Check authentication if credentials are configured
        if credentials is not None:
            auth_header = self.headers.get("Authorization")
            if not _check_basic_auth(auth_header, credentials):
                self.send_response(401)
                self.send_header("WWW-Authenticate", 'Basic realm="Metrics"')
                self.send_header("Content-Type", "application/json")
                self.end_headers()
                self.wfile.write(json.dumps({"error": "Unauthorized"}).encode())
                return

        path = self.path.split("?", 1)[0]
        if path == self.server.metrics_path:
            try:
                data = generate_latest(self.server.registry)
            except Exception as exc:
                logging.error(f"Metrics error: {exc}")
                self.send_error(500, "Internal Server Error")
                return
            self._send_body(data, CONTENT_TYPE_LATEST)
        elif path == "/":
            page = _LANDING_PAGE.format(path=self.server.metrics_path).encode()
            self._send_body(page, "text/html; charset=utf-8")
        else:
            self.send_error(404)

    def _send_body(self, data: bytes, content_type: str) -> None:
        self.send_response(200)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def log_message(self, format: str, *args) -> None:
        """Route HTTP access logging to debug."""
        logging.debug(f"Metrics server: {format % args}")


class MetricsServer:
    """Prometheus metrics HTTP server with optional auth."""

    def __init__(
        self,
        registry: CollectorRegistry,
        addr: str = "127.0.0.1",
        port: int = 9558,
        metrics_path: str = "/metrics",
    ) -> None:
        self.registry = registry
        self.addr = addr
        self.port = port
        self.metrics_path = metrics_path
        self.server: MetricsHTTPServer | None = None
        self.thread: threading.Thread | None = None
        self._running = False

    def _check_security(self) -> bool:
        """Check security configuration and warn/fail if insecure.

        Returns:
            True if configuration is acceptable, False if should not start.
        """
        credentials = _get_metrics_auth_credentials()
        is_localhost = self.addr in ("127.0.0.1", "localhost", "::1")

        # Localhost binding - always allowed
        if is_localhost:
            return True

        # Non-localhost binding requires authentication
        if credentials is None:
            allow_no_auth = os.environ.get("METRICS_ALLOW_NO_AUTH", "").lower() in ("1", "true", "yes")
            if allow_no_auth:
                logging.warning(
                    f"METRICS_ADDR={self.addr} without authentication! "
                    f"Set METRICS_AUTH_USER and METRICS_AUTH_PASS (Basic Auth). "
                    f"Server will START but is INSECURE."
                )
                return True
            else:
                logging.error(
                    f"SECURITY ERROR: METRICS_ADDR={self.addr} requires authentication. "
                    f"Set METRICS_AUTH_USER and METRICS_AUTH_PASS (Basic Auth)\n"
                    f"  - Or set METRICS_ALLOW_NO_AUTH=1 to override (NOT recommended)"
                )
                return False

        return True

    def start(self) -> bool:
        """Start metrics server in background thread.

        Returns:
            True if the server is listening.
        """
        if self._running:
            return True

        # Security check
        if not self._check_security():
            logging.error("Metrics server not started due to security configuration.")
            return False

        try:
            self.server = MetricsHTTPServer((self.addr, self.port), self.registry, self.metrics_path)
        except OSError as exc:
            logging.error(f"Failed to start metrics server: {exc}")
            return False

        # Port 0 binds an ephemeral port
        self.port = self.server.server_address[1]
        self.thread = threading.Thread(target=self.server.serve_forever, name="metrics-server", daemon=True)
        self.thread.start()
        self._running = True

        auth_status = "with auth" if _get_metrics_auth_credentials() else "no auth"
        host = f"[{self.addr}]" if ":" in self.addr else self.addr
        logging.info(f"Metrics server started on http://{host}:{self.port}{self.metrics_path} ({auth_status})")
        return True

    def stop(self) -> None:
        """Stop metrics server."""
        if not self._running or self.server is None:
            return
        self._running = False
        self.server.shutdown()
        self.server.server_close()
        if self.thread is not None:
            self.thread.join(timeout=5)


def start_metrics_server(
    registry: CollectorRegistry,
    addr: str = "127.0.0.1",
    port: int = 9558,
    metrics_path: str = "/metrics",
) -> MetricsServer | None:
    """Start Prometheus metrics HTTP server with optional auth.

    Security:
        - Default binds to 127.0.0.1 (localhost only)
        - Set addr="0.0.0.0" for pod network (Kubernetes)
        - Authentication via METRICS_AUTH_USER + METRICS_AUTH_PASS (Basic Auth)
        - Set METRICS_ALLOW_NO_AUTH=1 to bypass auth requirement (not recommended)

    Args:
        registry: Registry whose collectors are exposed
        addr: Network address to bind to (127.0.0.1 for localhost-only)
        port: Port to listen on
        metrics_path: HTTP path serving the metrics

    Returns:
        MetricsServer instance or None if it could not start
    """
    server = MetricsServer(registry, addr=addr, port=port, metrics_path=metrics_path)
    if not server.start():
        return None
    return server
