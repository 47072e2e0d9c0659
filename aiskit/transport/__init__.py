"""HTTP and gRPC server helpers."""

__all__ = ["http_server", "grpc_server"]