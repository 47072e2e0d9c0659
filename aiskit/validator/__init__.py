"""Dataclass validation with per-rule custom error messages."""

__all__ = ["validation_error", "validator"]