"""Tenant claims carried with the current execution context.

Repositories read the active :class:`TenantContext` to scope every query and
to fill tenant columns on insert. Models that implement
:class:`TenantIgnorable` and answer True bypass that enforcement.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional, Protocol, runtime_checkable

from aiskit.ids.ulid import ULID

__all__ = ["TenantContext", "TenantIgnorable", "with_tenant_context", "tenant_from_context"]


@dataclass(frozen=True)
class TenantContext:
    """Tenant-scoped claims.

    ``tenant_id`` is required. Non-admin users must also carry ``dept_id``
    for models with a department column; admins see every department of
    their tenant. ``policy_version`` and ``roles`` are reserved.
    """

    tenant_id: ULID
    dept_id: Optional[ULID] = None
    is_admin: bool = False
    policy_version: int = 0
    roles: tuple[str, ...] = ()
    user_id: ULID = field(default_factory=ULID)


@runtime_checkable
class TenantIgnorable(Protocol):
    """Models that decide for themselves whether tenant enforcement applies."""

    def tenant_ignored(self) -> bool: ...


_current: contextvars.ContextVar[Optional[TenantContext]] = contextvars.ContextVar(
    "aiskit_tenant_context", default=None
)


@contextmanager
def with_tenant_context(tc: TenantContext) -> Iterator[TenantContext]:
    """Make ``tc`` the active tenant context for the duration of the block."""
    token = _current.set(tc)
    try:
        yield tc
    finally:
        _current.reset(token)


def tenant_from_context() -> Optional[TenantContext]:
    """The active tenant context, or None when there is none."""
    return _current.get()