"""Building blocks for backend services: ids, validation, replies, shutdown, transport and tenant primitives."""

__version__ = "0.1.0"

__all__ = ["ids", "validator", "response", "shutdown", "transport", "repository"]