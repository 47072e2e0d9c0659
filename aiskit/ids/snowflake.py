"""Snowflake identifiers: 64-bit, time-ordered, with a 10-bit node id.

Layout: 41 bits of milliseconds since a fixed epoch, 10 bits of node id and
12 bits of per-millisecond sequence. The node used by the module-level
functions is read from the ``SNOWFLAKE_NODE_ID`` environment variable.
"""

from __future__ import annotations

import os
import re
import threading
import time
from typing import Optional

__all__ = [
    "EPOCH",
    "MAX_NODE_ID",
    "DEFAULT_NODE_ID",
    "ENV_NODE_ID",
    "ConfigError",
    "Generator",
    "generate",
    "generate_string",
    "parse",
    "node_id_from_env",
]

EPOCH = 1288834974657
MAX_NODE_ID = 1023
DEFAULT_NODE_ID = 0
ENV_NODE_ID = "SNOWFLAKE_NODE_ID"

_NODE_BITS = 10
_STEP_BITS = 12
_STEP_MASK = (1 << _STEP_BITS) - 1
_NODE_MASK = (1 << _NODE_BITS) - 1
_TIME_SHIFT = _NODE_BITS + _STEP_BITS
_NODE_SHIFT = _STEP_BITS
_INTEGER = re.compile(r"[+-]?[0-9]+")


class ConfigError(ValueError):
    """An invalid generator setting."""

    def __init__(self, field: str, value: int, message: str) -> None:
        super().__init__(f"{field}={value}: {message}")
        self.field = field
        self.value = value
        self.message = message


class Generator:
    """Thread-safe snowflake generator for one node."""

    def __init__(self, node_id: int) -> None:
        if not 0 <= node_id <= MAX_NODE_ID:
            raise ConfigError("nodeID", node_id, f"nodeID must be between 0 and {MAX_NODE_ID}")
        self.node_id = node_id
        self._lock = threading.Lock()
        # Anchor wall time once and advance with the monotonic clock.
        self._start_ms = time.time_ns() // 1_000_000 - EPOCH
        self._start_mono = time.monotonic_ns()
        self._time = 0
        self._step = 0

    def _elapsed_ms(self) -> int:
        return self._start_ms + (time.monotonic_ns() - self._start_mono) // 1_000_000

    def generate(self) -> int:
        with self._lock:
            now = self._elapsed_ms()
            if now == self._time:
                self._step = (self._step + 1) & _STEP_MASK
                if self._step == 0:
                    while now <= self._time:
                        time.sleep(0)
                        now = self._elapsed_ms()
            else:
                self._step = 0
            self._time = now
            return (now << _TIME_SHIFT) | (self.node_id << _NODE_SHIFT) | self._step

    def generate_string(self) -> str:
        return str(self.generate())


_global: Optional[Generator] = None
_global_lock = threading.Lock()


def _global_generator() -> Generator:
    global _global
    with _global_lock:
        if _global is None:
            _global = Generator(node_id_from_env())
        return _global


def generate() -> int:
    """Generate an id on the node named by ``SNOWFLAKE_NODE_ID`` (default 0).

    Every instance of a multi-instance deployment needs its own node id.
    """
    return _global_generator().generate()


def generate_string() -> str:
    return str(generate())


def parse(id: int) -> tuple[int, int]:
    """Return (timestamp in Unix milliseconds, node id) of a snowflake id."""
    return (id >> _TIME_SHIFT) + EPOCH, (id >> _NODE_SHIFT) & _NODE_MASK


def node_id_from_env() -> int:
    """Read the node id from the environment, falling back to the default when unset or invalid."""
    value = os.environ.get(ENV_NODE_ID, "")
    if not _INTEGER.fullmatch(value):
        return DEFAULT_NODE_ID
    node_id = int(value)
    if not 0 <= node_id <= MAX_NODE_ID:
        return DEFAULT_NODE_ID
    return node_id