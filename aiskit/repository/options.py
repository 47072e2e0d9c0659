"""Query options for repository reads and the page result type."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

__all__ = [
    "Scope",
    "Option",
    "QueryOption",
    "PageResult",
    "with_preloads",
    "with_scopes",
    "with_order_by",
    "with_select",
    "with_joins",
    "apply_options",
]

T = TypeVar("T")

Scope = Callable[[Any], Any]


@dataclass
class QueryOption:
    """How a query is shaped.

    ``preloads`` names relationships to load eagerly (``"user"``,
    ``"user.profile"``); ``scopes`` are callables that take and return a
    query; ``order_by`` is an ordering clause such as ``"created_at DESC"``;
    ``select`` lists columns; ``joins`` lists join clauses.
    """

    preloads: list[str] = field(default_factory=list)
    scopes: list[Scope] = field(default_factory=list)
    order_by: str = ""
    select: list[str] = field(default_factory=list)
    joins: list[str] = field(default_factory=list)


Option = Callable[[QueryOption], None]


def with_preloads(*preloads: str) -> Option:
    def apply(o: QueryOption) -> None:
        o.preloads = list(preloads)

    return apply


def with_scopes(*scopes: Scope) -> Option:
    def apply(o: QueryOption) -> None:
        o.scopes = list(scopes)

    return apply


def with_order_by(order_by: str) -> Option:
    def apply(o: QueryOption) -> None:
        o.order_by = order_by

    return apply


def with_select(*columns: str) -> Option:
    def apply(o: QueryOption) -> None:
        o.select = list(columns)

    return apply


def with_joins(*joins: str) -> Option:
    def apply(o: QueryOption) -> None:
        o.joins = list(joins)

    return apply


def apply_options(opts: Optional[Iterable[Option]]) -> QueryOption:
    """Apply ``opts`` in order to a fresh QueryOption; later options overwrite earlier ones."""
    result = QueryOption()
    for opt in opts or ():
        opt(result)
    return result


@dataclass
class PageResult(Generic[T]):
    """One page of records with paging totals."""

    items: list[T]
    total: int
    page: int
    page_size: int
    pages: int