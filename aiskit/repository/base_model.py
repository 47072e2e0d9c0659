"""Common columns for mapped models: ULID key, timestamps and soft-delete flag."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import CHAR, DateTime, Integer, event
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from aiskit.ids import ulid
from aiskit.ids.ulid import ULID

__all__ = ["BaseModel"]


class _ULIDType(TypeDecorator):
    """Stores a ULID as its 26-character text form."""

    impl = CHAR(26)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Dialect) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, ULID):
            return str(value)
        return str(ulid.parse(str(value)))

    def process_result_value(self, value: Any, dialect: Dialect) -> Optional[ULID]:
        if value is None:
            return None
        return ulid.parse(value)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseModel:
    """Mixin for declarative models.

    ``id`` is generated on insert when unset or zero; ``create_time`` and
    ``update_time`` are maintained automatically; ``deleted`` is 1 for
    soft-deleted rows.
    """

    id: Mapped[ULID] = mapped_column(_ULIDType, primary_key=True, comment="主键ID(ULID)")
    create_time: Mapped[datetime] = mapped_column(
        "create_time", DateTime(timezone=True), default=_utcnow, comment="创建时间"
    )
    update_time: Mapped[datetime] = mapped_column(
        "update_time",
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        comment="更新时间",
    )
    deleted: Mapped[int] = mapped_column(
        "deleted", Integer, default=0, server_default="0", comment="软删除标记(1=已删除)"
    )


@event.listens_for(BaseModel, "before_insert", propagate=True)
def _assign_id(mapper: Any, connection: Any, target: BaseModel) -> None:
    current = getattr(target, "id", None)
    if current is None or current.is_zero():
        target.id = ulid.generate()