"""Uniform JSON API replies: ``{"code": ..., "msg": ..., "data": ...}``.

Each helper returns a :class:`Reply` holding the HTTP status to send and the
body. Errors that carry integer ``code`` and ``http_status`` attributes and a
string ``message`` attribute are treated as business errors: their code and
message go into the body and their status onto the wire.
"""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Optional

__all__ = [
    "Result",
    "Response",
    "PageResult",
    "Reply",
    "ok",
    "ok_with_data",
    "ok_with_msg",
    "success",
    "error",
    "error_with_code",
    "error_with_msg",
    "page_data",
    "bad_request",
    "unauthorized",
    "forbidden",
    "not_found",
    "internal_error",
    "service_unavailable",
]


def _jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.metadata.get("json", f.name): _jsonable(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


@dataclass
class Result:
    """The standard response body."""

    code: int
    msg: str
    data: Any = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "msg": self.msg, "data": _jsonable(self.data)}


Response = Result


@dataclass
class PageResult:
    """A page of items; serialised with the items under ``list``."""

    items: Any
    total: int
    page: int
    page_size: int = field(metadata={"json": "page_size"})

    def __post_init__(self) -> None:
        # Field metadata keeps the wire name of ``items``.
        pass


PageResult.__dataclass_fields__["items"].metadata = {"json": "list"}  # type: ignore[misc]


@dataclass(frozen=True)
class Reply:
    """An HTTP status code and the body to send with it."""

    status_code: int
    result: Result

    def to_json(self) -> str:
        return json.dumps(self.result.to_dict(), ensure_ascii=False, default=str)


def _new_result(code: int, msg: str, data: Any = None) -> Result:
    return Result(code=code, msg=msg, data={} if data is None else data)


def _normalize_status(code: int) -> int:
    if code < 100 or code > 599:
        return HTTPStatus.INTERNAL_SERVER_ERROR
    return code


def _reply(code: int, msg: str, data: Any = None) -> Reply:
    return Reply(status_code=int(_normalize_status(code)), result=_new_result(code, msg, data))


def _business_error(err: BaseException) -> Optional[tuple[int, str, int]]:
    """Return (code, message, http_status) of the first business error in the cause chain."""
    seen: set[int] = set()
    current: Optional[BaseException] = err
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        code = getattr(current, "code", None)
        message = getattr(current, "message", None)
        status = getattr(current, "http_status", None)
        if (
            isinstance(code, int)
            and isinstance(status, int)
            and isinstance(message, str)
            and not isinstance(code, bool)
        ):
            return code, message, status
        current = current.__cause__
    return None


def ok() -> Reply:
    return _reply(HTTPStatus.OK, "ok")


def ok_with_data(data: Any) -> Reply:
    return _reply(HTTPStatus.OK, "ok", data)


def ok_with_msg(msg: str, *args: Any) -> Reply:
    """Success with a custom message; the first extra argument, if any, is the data."""
    return _reply(HTTPStatus.OK, msg, args[0] if args else None)


def success(msg: str, data: Any) -> Reply:
    return _reply(HTTPStatus.OK, msg, data)


def error(err: Optional[BaseException]) -> Reply:
    """Reply for ``err``: business errors keep their status, others become 500."""
    if err is None:
        return ok()
    biz = _business_error(err)
    if biz is not None:
        code, message, status = biz
        return Reply(status_code=status, result=Result(code=code, msg=message, data={}))
    return _reply(HTTPStatus.INTERNAL_SERVER_ERROR, str(err))


def error_with_code(code: int, err: Optional[BaseException]) -> Reply:
    """Reply for ``err`` with ``code`` as status; for business errors 500 keeps their own status."""
    if err is None:
        return Reply(status_code=code, result=Result(code=code, msg="ok", data={}))
    biz = _business_error(err)
    if biz is not None:
        biz_code, message, status = biz
        if code != HTTPStatus.INTERNAL_SERVER_ERROR:
            status = code
        return Reply(status_code=status, result=Result(code=biz_code, msg=message, data={}))
    return _reply(code, str(err))


def error_with_msg(msg: str) -> Reply:
    return _reply(HTTPStatus.INTERNAL_SERVER_ERROR, msg)


def page_data(items: Any, total: int, page: int, page_size: int) -> Reply:
    return ok_with_data(PageResult(items=items, total=total, page=page, page_size=page_size))


def bad_request(msg: str) -> Reply:
    return _reply(HTTPStatus.BAD_REQUEST, msg)


def unauthorized(msg: str) -> Reply:
    return _reply(HTTPStatus.UNAUTHORIZED, msg)


def forbidden(msg: str) -> Reply:
    return _reply(HTTPStatus.FORBIDDEN, msg)


def not_found(msg: str) -> Reply:
    return _reply(HTTPStatus.NOT_FOUND, msg)


def internal_error(msg: str) -> Reply:
    return _reply(HTTPStatus.INTERNAL_SERVER_ERROR, msg)


def service_unavailable(msg: str) -> Reply:
    return _reply(HTTPStatus.SERVICE_UNAVAILABLE, msg)