"""Metrics HTTP exposition server.

`enable(registry, addr)` starts serving `GET /metrics` from a daemon thread
and returns immediately. Only a malformed address is reported to the caller
(`BindAddressError`); a bind failure such as a port already in use is
logged as a warning from the server thread and the agent keeps running
without metrics exposition. There is no retry or rebind.

Addresses of the form ":9090" bind the port on all interfaces, IPv4 and
IPv6 when the host supports dual-stack sockets, IPv4 only otherwise.
"""
from __future__ import annotations

import logging
import socket
import socketserver
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlsplit

from cilium_agent.utils.exceptions import BindAddressError

from .exposition import CONTENT_TYPE, generate_latest
from .registry import MetricsRegistry

logger = logging.getLogger(__name__)

METRICS_PATH = '/metrics'

__all__ = ["METRICS_PATH", "MetricsServer", "enable", "parse_bind_address"]


def parse_bind_address(addr: str) -> tuple[str, int]:
    """Split "<host>:<port>", ":<port>" or "[<ipv6>]:<port>" into (host, port)."""
    if not isinstance(addr, str) or ':' not in addr:
        raise BindAddressError(f"invalid metrics bind address {addr!r}: expected <host>:<port>")
    host, _, port_s = addr.rpartition(':')
    if host.startswith('[') and host.endswith(']'):
        host = host[1:-1]
    elif ':' in host:
        raise BindAddressError(f"invalid metrics bind address {addr!r}: IPv6 hosts must be bracketed")
    if not (port_s.isascii() and port_s.isdigit()):
        raise BindAddressError(f"invalid metrics bind address {addr!r}: port must be numeric")
    port = int(port_s)
    if port > 65535:
        raise BindAddressError(f"invalid metrics bind address {addr!r}: port out of range")
    return host, port


class _MetricsHandler(BaseHTTPRequestHandler):
    server_version = "CiliumMetricsHTTP/1.0"
    registry: MetricsRegistry

    # Clients hanging up mid-response are routine for scrapers on timeout.
    _BENIGN_ERRORS = (BrokenPipeError, ConnectionResetError, TimeoutError)

    @classmethod
    def factory(cls, registry: MetricsRegistry) -> type[_MetricsHandler]:
        return type('MetricsHandler', (cls,), {'registry': registry})

    def handle(self):  # override w/ same signature
        try:
            super().handle()
        except self._BENIGN_ERRORS as e:  # pragma: no cover - timing dependent
            logger.debug("metrics_http: client connection dropped: %s", e)

    def log_message(self, format, *args):  # access lines at debug only
        logger.debug("metrics_http: %s", format % args)

    def do_GET(self):  # noqa: N802
        if urlsplit(self.path).path != METRICS_PATH:
            self.send_error(404, "Not Found")
            return
        try:
            body = generate_latest(self.registry)
        except Exception:
            logger.warning("metrics_http: failed to render metrics snapshot", exc_info=True)
            self.send_error(500, "Internal Server Error")
            return
        self.send_response(200)
        self.send_header('Content-Type', CONTENT_TYPE)
        self.send_header('Content-Length', str(len(body)))
        self.end_headers()
        self.wfile.write(body)


class _MetricsHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def server_bind(self):
        # HTTPServer.server_bind resolves the FQDN of the bind host, which can
        # stall on hosts without working reverse DNS.
        socketserver.TCPServer.server_bind(self)
        host, port = self.server_address[:2]
        self.server_name = host
        self.server_port = port


class _MetricsHTTPServerV6(_MetricsHTTPServer):
    address_family = socket.AF_INET6


class _MetricsHTTPServerDualStack(_MetricsHTTPServerV6):
    def server_bind(self):
        self.socket.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
        super().server_bind()


def _server_class(host: str) -> type[_MetricsHTTPServer]:
    if not host:
        return _MetricsHTTPServerDualStack if socket.has_dualstack_ipv6() else _MetricsHTTPServer
    if ':' in host:
        return _MetricsHTTPServerV6
    return _MetricsHTTPServer


class MetricsServer:
    """Handle on the background exposition thread."""

    def __init__(self, registry: MetricsRegistry, bind_address: str):
        self.registry = registry
        self.bind_address = bind_address
        self.host, self.port = parse_bind_address(bind_address)
        self.error: BaseException | None = None
        self._httpd: _MetricsHTTPServer | None = None
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()
        self._done = threading.Event()
        self._stop_requested = threading.Event()
        self._lock = threading.Lock()

    def start(self) -> MetricsServer:
        self._thread = threading.Thread(target=self._run, name="cilium-metrics-http", daemon=True)
        self._thread.start()
        return self

    def _run(self) -> None:
        server_cls = _server_class(self.host)
        try:
            httpd = server_cls((self.host, self.port), _MetricsHandler.factory(self.registry))
        except OSError as e:
            self.error = e
            logger.warning("Cannot start metrics server on %s: %s", self.bind_address, e)
            self._done.set()
            return
        with self._lock:
            # shutdown() may have run before the socket was bound.
            if self._stop_requested.is_set():
                logger.debug("Metrics server on %s stopped before serving", self.bind_address)
                httpd.server_close()
                self._done.set()
                return
            self._httpd = httpd
        host, port = httpd.server_address[:2]
        logger.info("Metrics server started on %s:%s", host or '0.0.0.0', port)
        logger.info("Metrics available at http://%s:%s%s", host or '0.0.0.0', port, METRICS_PATH)
        self._ready.set()
        try:
            httpd.serve_forever()
        except Exception as e:
            self.error = e
            logger.warning("Metrics server on %s stopped: %s", self.bind_address, e, exc_info=True)
        finally:
            httpd.server_close()
            self._done.set()

    def wait_until_ready(self, timeout: float = 5.0) -> bool:
        """True once listening; False if the bind failed or `timeout` elapsed."""
        deadline = time.monotonic() + timeout
        while True:
            if self._ready.is_set():
                return True
            if self._done.is_set():
                return False
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            self._ready.wait(min(0.05, remaining))

    @property
    def running(self) -> bool:
        return self._ready.is_set() and not self._done.is_set()

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def server_address(self) -> tuple[str, int] | None:
        """Actual bound (host, port); resolves port 0 to the assigned port."""
        if self._httpd is None:
            return None
        host, port = self._httpd.server_address[:2]
        return host, port

    def shutdown(self, timeout: float = 2.0) -> None:
        """Stop serving and release the port. Safe to call when not running."""
        with self._lock:
            self._stop_requested.set()
            httpd = self._httpd
        if httpd is not None and not self._done.is_set():
            httpd.shutdown()
        if self._thread is not None:
            self._thread.join(timeout=timeout)


def enable(registry: MetricsRegistry, bind_address: str) -> MetricsServer:
    """Begin serving metrics on `bind_address` without blocking the caller."""
    return MetricsServer(registry, bind_address).start()
