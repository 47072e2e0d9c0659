"""Validation errors grouped by field."""

from __future__ import annotations

from typing import Iterable, Mapping, Optional

__all__ = ["ValidationError"]


class ValidationError(Exception):
    """Validation failures, mapping each field path to its error messages."""

    def __init__(self, errors: Optional[Mapping[str, Iterable[str]]] = None) -> None:
        super().__init__()
        self.errors: dict[str, list[str]] = {
            field: list(messages) for field, messages in (errors or {}).items()
        }

    def __str__(self) -> str:
        return "".join(
            f"{field}: {', '.join(messages)}; " for field, messages in self.errors.items()
        )

    def has_errors(self) -> bool:
        return bool(self.errors)

    def add(self, field: str, message: str) -> None:
        self.errors.setdefault(field, []).append(message)

    def get(self, field: str) -> list[str]:
        """Messages recorded for ``field``; empty when there are none."""
        return list(self.errors.get(field, []))