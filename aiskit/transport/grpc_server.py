"""gRPC server and client construction for service-to-service calls.

In ``monolith`` mode the server listens on a per-process local socket and
every client connects to it, whatever target it was given. Otherwise the
server listens on TCP on every interface and clients dial their target.
Unary calls pass through a recovery interceptor, which turns unexpected
exceptions into ``INTERNAL`` errors, and a logging interceptor, which reports
failed and slow requests.
"""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
import time
import traceback
from concurrent import futures
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

import grpc

__all__ = [
    "MONOLITH",
    "MAX_MESSAGE_SIZE",
    "SLOW_REQUEST_THRESHOLD",
    "GrpcConfig",
    "StatusError",
    "UnaryHandler",
    "UnaryInterceptor",
    "recovery_interceptor",
    "logging_interceptor",
    "listen_address",
    "new_server",
    "client_target",
    "new_client",
]

MONOLITH = "monolith"
MAX_MESSAGE_SIZE = 16 * 1024 * 1024
SLOW_REQUEST_THRESHOLD = 0.5
_MAX_WORKERS = 32

UnaryHandler = Callable[[Any, Any], Any]
UnaryInterceptor = Callable[[Any, Any, str, UnaryHandler], Any]

_SERVER_OPTIONS = [
    ("grpc.max_connection_idle_ms", 5 * 60 * 1000),
    ("grpc.max_connection_age_ms", 30 * 60 * 1000),
    ("grpc.max_connection_age_grace_ms", 10 * 1000),
    ("grpc.keepalive_time_ms", 30 * 1000),
    ("grpc.keepalive_timeout_ms", 10 * 1000),
    ("grpc.http2.min_recv_ping_interval_without_data_ms", 10 * 1000),
    ("grpc.keepalive_permit_without_calls", 1),
    ("grpc.max_receive_message_length", MAX_MESSAGE_SIZE),
    ("grpc.max_send_message_length", MAX_MESSAGE_SIZE),
]

_CLIENT_OPTIONS = [
    ("grpc.max_receive_message_length", MAX_MESSAGE_SIZE),
    ("grpc.max_send_message_length", MAX_MESSAGE_SIZE),
    ("grpc.initial_reconnect_backoff_ms", 1000),
    ("grpc.max_reconnect_backoff_ms", 30 * 1000),
    ("grpc.min_reconnect_backoff_ms", 10 * 1000),
]


@dataclass
class GrpcConfig:
    """Listening port and deployment mode (``monolith`` or anything else for TCP)."""

    port: int = 0
    mode: str = ""


class StatusError(Exception):
    """An RPC failure carrying a gRPC status code and details."""

    def __init__(self, code: grpc.StatusCode, details: str) -> None:
        super().__init__(f"rpc error: code = {code.name} desc = {details}")
        self.code = code
        self.details = details


def recovery_interceptor(log: logging.Logger) -> UnaryInterceptor:
    """Turn unexpected exceptions from a handler into an ``INTERNAL`` StatusError."""

    def intercept(request: Any, context: Any, method: str, handler: UnaryHandler) -> Any:
        try:
            return handler(request, context)
        except StatusError:
            raise
        except Exception as exc:
            log.error(
                "gRPC panic recovered panic=%r method=%s stack=%s",
                exc,
                method,
                traceback.format_exc(),
            )
            raise StatusError(grpc.StatusCode.INTERNAL, "internal server error") from exc

    return intercept


def logging_interceptor(log: logging.Logger) -> UnaryInterceptor:
    """Log failed requests and requests slower than :data:`SLOW_REQUEST_THRESHOLD`."""

    def intercept(request: Any, context: Any, method: str, handler: UnaryHandler) -> Any:
        start = time.monotonic()
        try:
            response = handler(request, context)
        except Exception as exc:
            log.warning(
                "gRPC request failed method=%s duration=%.3fs error=%s",
                method,
                time.monotonic() - start,
                exc,
            )
            raise
        duration = time.monotonic() - start
        if duration > SLOW_REQUEST_THRESHOLD:
            log.warning("gRPC slow request method=%s duration=%.3fs", method, duration)
        return response

    return intercept


def _bind(interceptor: UnaryInterceptor, method: str, inner: UnaryHandler) -> UnaryHandler:
    return lambda request, context: interceptor(request, context, method, inner)


class _ChainInterceptor(grpc.ServerInterceptor):
    """Applies unary interceptors in order, the first one outermost."""

    def __init__(self, interceptors: Sequence[UnaryInterceptor]) -> None:
        self._interceptors = list(interceptors)

    def intercept_service(self, continuation, handler_call_details):
        handler = continuation(handler_call_details)
        if handler is None or handler.unary_unary is None:
            return handler

        method = handler_call_details.method
        call: UnaryHandler = handler.unary_unary
        for interceptor in reversed(self._interceptors):
            call = _bind(interceptor, method, call)

        def behavior(request: Any, context: grpc.ServicerContext) -> Any:
            try:
                return call(request, context)
            except StatusError as exc:
                context.abort(exc.code, exc.details)

        return grpc.unary_unary_rpc_method_handler(
            behavior,
            request_deserializer=handler.request_deserializer,
            response_serializer=handler.response_serializer,
        )


def _inproc_socket_path() -> str:
    return os.path.join(tempfile.gettempdir(), f"aiskit-grpc-{os.getpid()}.sock")


def listen_address(config: GrpcConfig) -> str:
    """The address the server binds for ``config``."""
    if config.mode == MONOLITH:
        return f"unix:{_inproc_socket_path()}"
    return f"[::]:{config.port}"


def new_server(config: GrpcConfig, logger: Optional[logging.Logger] = None) -> grpc.Server:
    """Create a bound, not yet started server; call ``start()`` and ``stop(grace)`` on it."""
    log = logger if logger is not None else logging.getLogger(__name__)
    server = grpc.server(
        futures.ThreadPoolExecutor(max_workers=_MAX_WORKERS, thread_name_prefix="grpc-server"),
        interceptors=[_ChainInterceptor([recovery_interceptor(log), logging_interceptor(log)])],
        options=_SERVER_OPTIONS,
    )
    if config.mode == MONOLITH:
        log.info("Using in-process gRPC listener")
        with contextlib.suppress(FileNotFoundError):
            os.unlink(_inproc_socket_path())
    else:
        log.info("Using TCP gRPC listener port=%d", config.port)
    server.add_insecure_port(listen_address(config))
    return server


def client_target(config: GrpcConfig, target: str) -> str:
    """The target a client actually dials; monolith mode ignores ``target``."""
    if config.mode == MONOLITH:
        return f"unix:{_inproc_socket_path()}"
    return target


def new_client(config: GrpcConfig, target: str) -> grpc.Channel:
    """Open an insecure channel to ``target`` (or to the in-process server in monolith mode)."""
    return grpc.insecure_channel(client_target(config, target), options=_CLIENT_OPTIONS)