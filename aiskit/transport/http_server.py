"""A small threaded WSGI HTTP server with liveness and readiness endpoints.

``/healthz`` answers whenever the process can respond. ``/readyz`` also
checks the database, when a ping callable is supplied, and reports memory and
thread usage.
"""

from __future__ import annotations

import json
import logging
import socket
import socketserver
import ssl
import sys
import threading
import tracemalloc
from dataclasses import dataclass, field
from datetime import datetime
from http import HTTPStatus
from typing import Any, Callable, Iterable, Optional
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer

__all__ = [
    "DEFAULT_APP_NAME",
    "HEALTH_ROUTES",
    "TLS_VERSION_1_2",
    "TLS_VERSION_1_3",
    "ListenOptions",
    "ListenConfig",
    "HTTPConfig",
    "build_listen_config",
    "healthz",
    "readyz",
    "make_wsgi_app",
    "HTTPServer",
]

DEFAULT_APP_NAME = "AIS App"
DEFAULT_READ_TIMEOUT = 30.0
DEFAULT_WRITE_TIMEOUT = 30.0
DEFAULT_IDLE_TIMEOUT = 120.0
TLS_VERSION_1_2 = 771
TLS_VERSION_1_3 = 772
HEALTH_ROUTES = ("/healthz", "/readyz")

_FAMILIES = {"tcp": socket.AF_INET, "tcp4": socket.AF_INET, "tcp6": socket.AF_INET6}
_TLS_VERSIONS = {
    TLS_VERSION_1_2: ssl.TLSVersion.TLSv1_2,
    TLS_VERSION_1_3: ssl.TLSVersion.TLSv1_3,
}

WSGIApp = Callable[[dict, Callable[..., Any]], Iterable[bytes]]


@dataclass
class ListenOptions:
    """Listener settings as read from configuration; zero values mean "use the default"."""

    enable_prefork: bool = False
    disable_startup_message: bool = False
    enable_print_routes: bool = False
    listener_network: str = ""
    cert_file: str = ""
    cert_key_file: str = ""
    cert_client_file: str = ""
    shutdown_timeout: float = 0.0
    unix_socket_file_mode: int = 0
    tls_min_version: int = 0


@dataclass
class ListenConfig:
    """Effective listener settings with defaults applied."""

    enable_prefork: bool = False
    disable_startup_message: bool = False
    enable_print_routes: bool = False
    listener_network: str = "tcp4"
    cert_file: str = ""
    cert_key_file: str = ""
    cert_client_file: str = ""
    shutdown_timeout: float = 10.0
    unix_socket_file_mode: int = 0o770
    tls_min_version: int = TLS_VERSION_1_2


@dataclass
class HTTPConfig:
    """Server settings; timeouts are in seconds and non-positive ones use defaults."""

    port: int = 0
    host: str = ""
    app_name: str = ""
    read_timeout: float = 0.0
    write_timeout: float = 0.0
    idle_timeout: float = 0.0
    listen: ListenOptions = field(default_factory=ListenOptions)


def build_listen_config(opts: ListenOptions) -> ListenConfig:
    """Turn configured options into effective settings, filling in defaults."""
    config = ListenConfig(
        enable_prefork=opts.enable_prefork,
        disable_startup_message=opts.disable_startup_message,
        enable_print_routes=opts.enable_print_routes,
        cert_file=opts.cert_file,
        cert_key_file=opts.cert_key_file,
        cert_client_file=opts.cert_client_file,
    )
    if opts.listener_network:
        config.listener_network = opts.listener_network
    if opts.shutdown_timeout > 0:
        config.shutdown_timeout = opts.shutdown_timeout
    if opts.unix_socket_file_mode > 0:
        config.unix_socket_file_mode = opts.unix_socket_file_mode
    if opts.tls_min_version > 0:
        config.tls_min_version = opts.tls_min_version
    return config


def _now_rfc3339() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


def _memory_bytes() -> int:
    if tracemalloc.is_tracing():
        return tracemalloc.get_traced_memory()[0]
    try:
        import resource
    except ImportError:
        return 0
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    return peak if sys.platform == "darwin" else peak * 1024


def healthz() -> tuple[int, dict[str, Any]]:
    """Liveness probe: always healthy while the process responds."""
    return HTTPStatus.OK, {"status": "ok", "time": _now_rfc3339()}


def readyz(db_ping: Optional[Callable[[], Any]] = None) -> tuple[int, dict[str, Any]]:
    """Readiness probe; ``db_ping`` raises when the database is unreachable."""
    checks: dict[str, str] = {}
    healthy = True

    if db_ping is not None:
        try:
            db_ping()
        except Exception as exc:
            checks["database"] = f"error: {exc}"
            healthy = False
        else:
            checks["database"] = "ok"

    checks["memory_alloc_mb"] = f"{_memory_bytes() / 1024 / 1024:.2f}"
    checks["threads"] = str(threading.active_count())

    status = HTTPStatus.OK if healthy else HTTPStatus.SERVICE_UNAVAILABLE
    return status, {
        "status": "ok" if healthy else "unhealthy",
        "time": _now_rfc3339(),
        "checks": checks,
    }


def _status_line(code: int) -> str:
    return f"{int(code)} {HTTPStatus(code).phrase}"


def make_wsgi_app(db_ping: Optional[Callable[[], Any]] = None) -> WSGIApp:
    """A WSGI application serving the health endpoints."""
    routes: dict[str, Callable[[], tuple[int, dict[str, Any]]]] = {
        "/healthz": healthz,
        "/readyz": lambda: readyz(db_ping),
    }

    def app(environ: dict, start_response: Callable[..., Any]) -> Iterable[bytes]:
        path = environ.get("PATH_INFO") or "/"
        method = (environ.get("REQUEST_METHOD") or "GET").upper()
        handler = routes.get(path)

        if handler is None:
            payload = f"Cannot {method} {path}".encode()
            start_response(
                _status_line(HTTPStatus.NOT_FOUND),
                [("Content-Type", "text/plain; charset=utf-8"), ("Content-Length", str(len(payload)))],
            )
            return [payload]

        if method not in ("GET", "HEAD"):
            payload = HTTPStatus.METHOD_NOT_ALLOWED.phrase.encode()
            start_response(
                _status_line(HTTPStatus.METHOD_NOT_ALLOWED),
                [
                    ("Content-Type", "text/plain; charset=utf-8"),
                    ("Content-Length", str(len(payload))),
                    ("Allow", "GET, HEAD"),
                ],
            )
            return [payload]

        status, body = handler()
        payload = json.dumps(body).encode()
        start_response(
            _status_line(status),
            [("Content-Type", "application/json; charset=utf-8"), ("Content-Length", str(len(payload)))],
        )
        return [] if method == "HEAD" else [payload]

    return app


class _ThreadingWSGIServer(socketserver.ThreadingMixIn, WSGIServer):
    daemon_threads = True


class _Handler(WSGIRequestHandler):
    logger: logging.Logger = logging.getLogger(__name__)
    write_timeout: float = DEFAULT_WRITE_TIMEOUT

    def parse_request(self) -> bool:
        parsed = super().parse_request()
        if parsed and self.write_timeout > 0:
            self.connection.settimeout(self.write_timeout)
        return parsed

    def log_message(self, format: str, *args: Any) -> None:
        self.logger.debug("%s - %s", self.address_string(), format % args)


class HTTPServer:
    """Serves a WSGI application on a background thread."""

    def __init__(
        self,
        config: Optional[HTTPConfig] = None,
        app: Optional[WSGIApp] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config if config is not None else HTTPConfig()
        self.app = app if app is not None else make_wsgi_app()
        self._logger = logger if logger is not None else logging.getLogger(__name__)
        self.app_name = self.config.app_name or DEFAULT_APP_NAME
        self.read_timeout = self.config.read_timeout if self.config.read_timeout > 0 else DEFAULT_READ_TIMEOUT
        self.write_timeout = (
            self.config.write_timeout if self.config.write_timeout > 0 else DEFAULT_WRITE_TIMEOUT
        )
        self.idle_timeout = self.config.idle_timeout if self.config.idle_timeout > 0 else DEFAULT_IDLE_TIMEOUT
        self.listen_config = build_listen_config(self.config.listen)
        self._server: Optional[_ThreadingWSGIServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> Optional[tuple[str, int]]:
        """The bound (host, port), or None when not running."""
        if self._server is None:
            return None
        host, port = self._server.server_address[:2]
        return host, port

    def _tls_context(self) -> Optional[ssl.SSLContext]:
        listen = self.listen_config
        if not (listen.cert_file and listen.cert_key_file):
            return None
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        minimum = _TLS_VERSIONS.get(listen.tls_min_version)
        if minimum is None:
            raise ValueError(f"unsupported TLS minimum version: {listen.tls_min_version}")
        context.minimum_version = minimum
        context.load_cert_chain(listen.cert_file, listen.cert_key_file)
        if listen.cert_client_file:
            context.load_verify_locations(listen.cert_client_file)
            context.verify_mode = ssl.CERT_REQUIRED
        return context

    def start(self) -> None:
        """Bind and start serving; binding errors are raised here."""
        if self._server is not None:
            raise RuntimeError("server already started")

        listen = self.listen_config
        family = _FAMILIES.get(listen.listener_network)
        if family is None:
            raise ValueError(f"unsupported listener network: {listen.listener_network}")
        if listen.enable_prefork:
            self._logger.warning("Prefork is not supported; serving from a single process")

        addr = f"{self.config.host}:{self.config.port}" if self.config.host else f":{self.config.port}"
        self._logger.info("Starting HTTP Server addr=%s", addr)

        handler = type(
            "_BoundHandler",
            (_Handler,),
            {"timeout": self.read_timeout, "write_timeout": self.write_timeout, "logger": self._logger},
        )
        server_class = type("_BoundServer", (_ThreadingWSGIServer,), {"address_family": family})
        tls = self._tls_context()

        server = server_class((self.config.host, self.config.port), handler)
        try:
            server.set_app(self.app)
            if tls is not None:
                server.socket = tls.wrap_socket(server.socket, server_side=True)
        except BaseException:
            server.server_close()
            raise

        thread = threading.Thread(
            target=server.serve_forever,
            kwargs={"poll_interval": 0.1},
            name=f"http-server-{self.app_name}",
            daemon=True,
        )
        self._server, self._thread = server, thread
        thread.start()

        if not listen.disable_startup_message:
            host, port = self.address or ("", 0)
            scheme = "https" if tls is not None else "http"
            self._logger.info("%s listening on %s://%s:%d", self.app_name, scheme, host or "0.0.0.0", port)
        if listen.enable_print_routes:
            for route in HEALTH_ROUTES:
                self._logger.info("Route GET %s", route)

    def stop(self) -> None:
        """Stop serving and release the socket."""
        server, thread = self._server, self._thread
        if server is None:
            return
        self._logger.info("Stopping HTTP Server")
        server.shutdown()
        server.server_close()
        if thread is not None:
            thread.join(self.listen_config.shutdown_timeout)
        self._server = None
        self._thread = None