"""Dataclass validation driven by field metadata.

Each dataclass field may carry two metadata entries:

* ``validate``: comma-separated rules such as ``"required,email"`` or
  ``"omitempty,min=8"``; alternatives are joined with ``|``.
* ``error_msg``: custom messages per rule, e.g.
  ``"required:email required|email:email invalid"``.

Nested dataclasses are validated recursively and their errors are reported
under dotted paths such as ``inner.email``.
"""

from __future__ import annotations

import dataclasses
import ipaddress
import re
import threading
import types
import typing
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

from aiskit.validator.validation_error import ValidationError

__all__ = ["RuleFunc", "Validator", "parse_error_message_tag"]

RuleFunc = Callable[[Any, str], bool]

_TAG_VALIDATE = "validate"
_TAG_CUSTOM = "error_msg"
_RULE_SEPARATOR = "|"
_KEY_VALUE_SEP = ":"
_OMIT_EMPTY = "omitempty"
_FIELD_ERR_MSG = "Key: '{ns}' Error:Field validation for '{field}' failed on the '{tag}' tag"
_RESTRICTED_TAGS = frozenset({_OMIT_EMPTY, "dive", "keys", "endkeys", "required_if_empty"})
_RESTRICTED_CHARS = (",", "|", "=", ":")

_EMAIL = re.compile(
    r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@"
    r"[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*$"
)
_UUID = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")
_ALPHA = re.compile(r"^[a-zA-Z]+$")
_ALPHANUM = re.compile(r"^[a-zA-Z0-9]+$")
_NUMERIC = re.compile(r"^[-+]?[0-9]+(?:\.[0-9]+)?$")
_NUMBER = re.compile(r"^[0-9]+$")
_BOOL_STRINGS = {"1": True, "t": True, "true": True, "0": False, "f": False, "false": False}


def parse_error_message_tag(tag: str) -> dict[str, str]:
    """Parse ``"rule:message|rule:message"`` into a rule-to-message mapping."""
    result: dict[str, str] = {}
    for entry in tag.split(_RULE_SEPARATOR):
        rule, sep, message = entry.partition(_KEY_VALUE_SEP)
        if sep:
            result[rule.strip()] = message.strip()
    return result


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bytes, list, tuple, dict, set, frozenset)):
        return len(value) == 0
    if isinstance(value, (bool, int, float)):
        return not value
    return False


def _measure(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError("Bad field type bool")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, (str, bytes, list, tuple, dict, set, frozenset)):
        return len(value)
    raise TypeError(f"Bad field type {type(value).__name__}")


def _parse_bool(param: str) -> bool:
    try:
        return _BOOL_STRINGS[param.lower()]
    except KeyError:
        raise ValueError(f"invalid boolean parameter: {param!r}") from None


def _required(value: Any, _param: str) -> bool:
    return not _is_empty(value)


def _eq(value: Any, param: str) -> bool:
    if isinstance(value, str):
        return value == param
    if isinstance(value, bool):
        return value == _parse_bool(param)
    if isinstance(value, (int, float)):
        return value == float(param)
    return _measure(value) == int(param)


def _ne(value: Any, param: str) -> bool:
    return not _eq(value, param)


def _compare(op: Callable[[float, float], bool]) -> RuleFunc:
    def check(value: Any, param: str) -> bool:
        return op(_measure(value), float(param))

    return check


def _oneof(value: Any, param: str) -> bool:
    options = param.split()
    if isinstance(value, str):
        return value in options
    if isinstance(value, int) and not isinstance(value, bool):
        return any(int(option) == value for option in options)
    raise TypeError(f"Bad field type {type(value).__name__}")


def _text_rule(predicate: Callable[[str, str], bool]) -> RuleFunc:
    def check(value: Any, param: str) -> bool:
        return isinstance(value, str) and predicate(value, param)

    return check


def _regex_rule(pattern: re.Pattern[str]) -> RuleFunc:
    return _text_rule(lambda s, _p: pattern.match(s) is not None)


def _is_url(s: str, _param: str) -> bool:
    try:
        parts = urlsplit(s)
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.netloc or parts.path)


def _ip_rule(kind: Optional[type]) -> RuleFunc:
    def check(s: str, _param: str) -> bool:
        try:
            address = ipaddress.ip_address(s)
        except ValueError:
            return False
        return kind is None or isinstance(address, kind)

    return _text_rule(check)


@dataclass(frozen=True)
class _RuleSpec:
    fn: RuleFunc
    call_even_if_null: bool


@dataclass(frozen=True)
class _Rule:
    name: str
    param: str


@dataclass(frozen=True)
class _FieldInfo:
    name: str
    validate_tag: str
    error_msg_tag: str
    is_struct: bool


def _builtin_rules() -> dict[str, _RuleSpec]:
    plain: dict[str, RuleFunc] = {
        "eq": _eq,
        "ne": _ne,
        "len": _compare(lambda a, b: a == b),
        "min": _compare(lambda a, b: a >= b),
        "max": _compare(lambda a, b: a <= b),
        "gt": _compare(lambda a, b: a > b),
        "gte": _compare(lambda a, b: a >= b),
        "lt": _compare(lambda a, b: a < b),
        "lte": _compare(lambda a, b: a <= b),
        "oneof": _oneof,
        "email": _regex_rule(_EMAIL),
        "uuid": _regex_rule(_UUID),
        "alpha": _regex_rule(_ALPHA),
        "alphanum": _regex_rule(_ALPHANUM),
        "numeric": _regex_rule(_NUMERIC),
        "number": _regex_rule(_NUMBER),
        "url": _text_rule(_is_url),
        "lowercase": _text_rule(lambda s, _p: s != "" and s == s.lower()),
        "uppercase": _text_rule(lambda s, _p: s != "" and s == s.upper()),
        "contains": _text_rule(lambda s, p: p in s),
        "excludes": _text_rule(lambda s, p: p not in s),
        "startswith": _text_rule(lambda s, p: s.startswith(p)),
        "endswith": _text_rule(lambda s, p: s.endswith(p)),
        "boolean": _text_rule(lambda s, _p: s.lower() in _BOOL_STRINGS),
        "ip": _ip_rule(None),
        "ipv4": _ip_rule(ipaddress.IPv4Address),
        "ipv6": _ip_rule(ipaddress.IPv6Address),
    }
    rules = {name: _RuleSpec(fn, False) for name, fn in plain.items()}
    rules["required"] = _RuleSpec(_required, True)
    return rules


def _annotation_is_struct(annotation: Any) -> bool:
    """True when a resolved (non-string) annotation names a dataclass, optionally wrapped."""
    if isinstance(annotation, str):
        return False
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) != 1:
            return False
        annotation = args[0]
    return isinstance(annotation, type) and dataclasses.is_dataclass(annotation)


def _is_struct_value(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def _parse_validate_tag(tag: str) -> tuple[tuple[tuple[_Rule, ...], str], ...]:
    parsed = []
    for token in tag.split(","):
        token = token.strip()
        if not token:
            continue
        alternatives = []
        for part in token.split(_RULE_SEPARATOR):
            name, _, param = part.strip().partition("=")
            alternatives.append(_Rule(name, param))
        reported = alternatives[0].name if len(alternatives) == 1 else token
        parsed.append((tuple(alternatives), reported))
    return tuple(parsed)


class Validator:
    """Validates dataclass instances using ``validate`` and ``error_msg`` field metadata."""

    def __init__(self) -> None:
        self._rules = _builtin_rules()
        self._lock = threading.RLock()
        self._field_cache: dict[type, tuple[_FieldInfo, ...]] = {}
        self._tag_cache: dict[str, tuple[tuple[tuple[_Rule, ...], str], ...]] = {}
        self._message_cache: dict[str, dict[str, str]] = {}

    def register_validation(
        self, tag: str, fn: RuleFunc, call_even_if_null: bool = False
    ) -> None:
        """Register a rule ``fn(value, param) -> bool`` under ``tag``."""
        if not tag:
            raise ValueError("function Key cannot be empty")
        if fn is None:
            raise ValueError("function cannot be empty")
        if tag in _RESTRICTED_TAGS or any(char in tag for char in _RESTRICTED_CHARS):
            raise ValueError(
                f"Tag '{tag}' either contains restricted characters or is the same as "
                "a restricted tag needed for normal operation"
            )
        with self._lock:
            self._rules[tag] = _RuleSpec(fn, call_even_if_null)

    def validate(self, obj: Any) -> None:
        """Validate ``obj``; raise ValidationError listing every failing field."""
        if obj is None:
            return
        errors = ValidationError()
        self._validate(obj, "", errors, set())
        if errors.has_errors():
            raise errors

    def _validate(
        self, obj: Any, prefix: str, errors: ValidationError, visited: set[tuple[type, int]]
    ) -> None:
        if not _is_struct_value(obj):
            return
        key = (type(obj), id(obj))
        if key in visited:
            return
        visited.add(key)

        for info in self._fields_of(type(obj)):
            value = getattr(obj, info.name, None)
            path = f"{prefix}.{info.name}" if prefix else info.name

            if info.is_struct or _is_struct_value(value):
                if value is not None:
                    self._validate(value, path, errors, visited)
                continue

            if not info.validate_tag:
                continue

            failed = self._first_failure(value, info.validate_tag)
            if failed is None:
                continue
            message = self._custom_message(info.error_msg_tag, failed)
            if not message:
                message = _FIELD_ERR_MSG.format(ns="", field="", tag=failed)
            errors.add(path, message)

    def _fields_of(self, cls: type) -> tuple[_FieldInfo, ...]:
        with self._lock:
            cached = self._field_cache.get(cls)
            if cached is not None:
                return cached
            infos = [
                _FieldInfo(
                    name=f.name,
                    validate_tag=f.metadata.get(_TAG_VALIDATE, ""),
                    error_msg_tag=f.metadata.get(_TAG_CUSTOM, ""),
                    is_struct=_annotation_is_struct(f.type),
                )
                for f in dataclasses.fields(cls)
                if not f.name.startswith("_")
            ]
            result = tuple(infos)
            self._field_cache[cls] = result
            return result

    def _parsed(self, tag: str) -> tuple[tuple[tuple[_Rule, ...], str], ...]:
        with self._lock:
            parsed = self._tag_cache.get(tag)
            if parsed is None:
                parsed = _parse_validate_tag(tag)
                self._tag_cache[tag] = parsed
            return parsed

    def _first_failure(self, value: Any, tag: str) -> Optional[str]:
        for alternatives, reported in self._parsed(tag):
            if len(alternatives) == 1 and alternatives[0].name == _OMIT_EMPTY:
                if _is_empty(value):
                    return None
                continue
            if not any(self._run(rule, value) for rule in alternatives):
                return reported
        return None

    def _run(self, rule: _Rule, value: Any) -> bool:
        with self._lock:
            spec = self._rules.get(rule.name)
        if spec is None:
            raise ValueError(f"Undefined validation function '{rule.name}' on field ''")
        if value is None and not spec.call_even_if_null:
            return False
        return bool(spec.fn(value, rule.param))

    def _custom_message(self, error_msg_tag: str, rule: str) -> str:
        if not error_msg_tag:
            return ""
        with self._lock:
            messages = self._message_cache.get(error_msg_tag)
            if messages is None:
                messages = parse_error_message_tag(error_msg_tag)
                self._message_cache[error_msg_tag] = messages
            return messages.get(rule, "")