"""ULID identifiers: a 48-bit millisecond timestamp followed by 80 bits of entropy.

Identifiers are encoded as 26 characters of Crockford's Base32, sort
lexicographically by creation time, and are generated monotonically: within
the same millisecond each new identifier is strictly greater than the last.
"""

from __future__ import annotations

import os
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

__all__ = [
    "ENCODING",
    "MAX_TIME",
    "ULID",
    "Generator",
    "generate",
    "generate_string",
    "generate_with_time",
    "parse",
    "time_of",
    "compare",
    "zero",
    "is_zero",
    "generate_batch",
    "generate_batch_string",
    "to_uuid",
    "from_uuid",
    "to_uuid_string",
    "from_uuid_string",
]

ENCODING = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
MAX_TIME = (1 << 48) - 1

_DECODING = {**{c: i for i, c in enumerate(ENCODING)}, **{c.lower(): i for i, c in enumerate(ENCODING)}}
_ENCODED_LENGTH = 26
_RANDOM_MAX = (1 << 80) - 1
_MAX_INCREMENT = (1 << 32) - 1
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)

Entropy = Callable[[int], bytes]


@dataclass(frozen=True, order=True)
class ULID:
    """A 128-bit identifier; instances order by their bytes."""

    data: bytes = bytes(16)

    def __post_init__(self) -> None:
        if not isinstance(self.data, (bytes, bytearray)) or len(self.data) != 16:
            raise ValueError("a ULID holds exactly 16 bytes")
        object.__setattr__(self, "data", bytes(self.data))

    @classmethod
    def from_parts(cls, timestamp_ms: int, randomness: int) -> "ULID":
        """Build a ULID from a millisecond timestamp and 80 bits of randomness."""
        if not 0 <= timestamp_ms <= MAX_TIME:
            raise ValueError(f"timestamp out of range: {timestamp_ms}")
        if not 0 <= randomness <= _RANDOM_MAX:
            raise ValueError("randomness must fit in 80 bits")
        return cls(timestamp_ms.to_bytes(6, "big") + randomness.to_bytes(10, "big"))

    def __str__(self) -> str:
        value = int.from_bytes(self.data, "big")
        return "".join(ENCODING[(value >> shift) & 31] for shift in range(125, -1, -5))

    def __bytes__(self) -> bytes:
        return self.data

    def timestamp_ms(self) -> int:
        """Milliseconds since the Unix epoch stored in the identifier."""
        return int.from_bytes(self.data[:6], "big")

    def compare(self, other: "ULID") -> int:
        """Return -1, 0 or 1 as this identifier is less than, equal to or greater than other."""
        return (self > other) - (self < other)

    def is_zero(self) -> bool:
        return self.data == bytes(16)


def _to_ms(t: datetime) -> int:
    if t.tzinfo is None:
        t = t.astimezone()
    return (t - _EPOCH) // _ONE_MS


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class Generator:
    """Thread-safe monotonic ULID generator.

    ``entropy`` is a callable returning the requested number of random bytes;
    it defaults to the operating system's cryptographically secure source.
    """

    def __init__(self, entropy: Optional[Entropy] = None) -> None:
        self._read = entropy if entropy is not None else os.urandom
        self._lock = threading.Lock()
        self._last_ms = -1
        self._last_random = 0

    def _read_exact(self, n: int) -> bytes:
        data = self._read(n)
        if len(data) != n:
            raise ValueError("entropy source returned too few bytes")
        return data

    def _next(self, ms: int) -> ULID:
        if not 0 <= ms <= MAX_TIME:
            raise ValueError(f"timestamp out of range: {ms}")
        if ms == self._last_ms:
            increment = 1 + int.from_bytes(self._read_exact(4), "big") % _MAX_INCREMENT
            randomness = self._last_random + increment
            if randomness > _RANDOM_MAX:
                raise OverflowError("monotonic entropy overflow")
        else:
            randomness = int.from_bytes(self._read_exact(10), "big")
        self._last_ms = ms
        self._last_random = randomness
        return ULID.from_parts(ms, randomness)

    def generate(self) -> ULID:
        with self._lock:
            return self._next(_now_ms())

    def generate_string(self) -> str:
        return str(self.generate())

    def generate_with_time(self, t: datetime) -> ULID:
        """Generate a ULID carrying the timestamp of ``t``."""
        with self._lock:
            return self._next(_to_ms(t))

    def _batch(self, count: int) -> list[ULID]:
        with self._lock:
            ms = _now_ms()
            return [self._next(ms) for _ in range(count)]


_default = Generator()


def generate() -> ULID:
    return _default.generate()


def generate_string() -> str:
    return str(generate())


def generate_with_time(t: datetime) -> ULID:
    return _default.generate_with_time(t)


def parse(s: str) -> ULID:
    """Parse the 26-character text form (case-insensitive); raise ValueError if invalid."""
    if len(s) != _ENCODED_LENGTH:
        raise ValueError(f"bad ULID length: {len(s)}")
    value = 0
    for char in s:
        try:
            value = (value << 5) | _DECODING[char]
        except KeyError:
            raise ValueError(f"invalid character in ULID: {char!r}") from None
    if value >> 128:
        raise ValueError("ULID overflows 128 bits")
    return ULID(value.to_bytes(16, "big"))


def time_of(id: ULID) -> datetime:
    """The timestamp of ``id`` as an aware UTC datetime."""
    return _EPOCH + timedelta(milliseconds=id.timestamp_ms())


def compare(a: ULID, b: ULID) -> int:
    return a.compare(b)


def zero() -> ULID:
    return ULID()


def is_zero(id: ULID) -> bool:
    return id.is_zero()


def generate_batch(count: int) -> list[ULID]:
    """Generate ``count`` strictly increasing ULIDs sharing one timestamp."""
    if count <= 0:
        return []
    return _default._batch(count)


def generate_batch_string(count: int) -> list[str]:
    return [str(item) for item in generate_batch(count)]


def to_uuid(id: ULID) -> uuid.UUID:
    """Reinterpret the 128 bits of a ULID as a UUID."""
    return uuid.UUID(bytes=id.data)


def from_uuid(u: uuid.UUID) -> ULID:
    """Reinterpret the 128 bits of a UUID as a ULID."""
    return ULID(u.bytes)


def to_uuid_string(id: ULID) -> str:
    return str(to_uuid(id))


def from_uuid_string(s: str) -> ULID:
    """Build a ULID from a UUID string in any common textual form."""
    try:
        u = uuid.UUID(s)
    except (ValueError, TypeError, AttributeError) as exc:
        raise ValueError(f"invalid UUID string: {exc}") from exc
    return from_uuid(u)