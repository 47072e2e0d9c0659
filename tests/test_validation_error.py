import pytest

from aiskit.validator.validation_error import ValidationError


def test_new_error_has_no_errors():
    err = ValidationError()
    assert not err.has_errors()
    assert err.errors == {}


def test_add_then_get_round_trip():
    err = ValidationError()
    err.add("email", "first problem")
    err.add("email", "second problem")
    err.add("name", "missing")
    assert err.has_errors()
    assert err.get("email") == ["first problem", "second problem"]
    assert err.get("name") == ["missing"]


def test_get_unknown_field_is_empty():
    err = ValidationError()
    err.add("email", "bad")
    assert err.get("other") == []


def test_get_returns_a_copy():
    err = ValidationError()
    err.add("email", "bad")
    err.get("email").append("mutated")
    assert err.get("email") == ["bad"]


def test_str_joins_messages_per_field():
    err = ValidationError()
    err.add("name", "a")
    err.add("name", "b")
    assert str(err) == "name: a, b; "


def test_constructor_copies_mapping():
    source = {"email": ["bad"]}
    err = ValidationError(source)
    err.add("email", "worse")
    assert source == {"email": ["bad"]}
    assert err.get("email") == ["bad", "worse"]


def test_can_be_raised_and_caught():
    err = ValidationError({"field": ["message"]})
    with pytest.raises(ValidationError) as exc_info:
        raise err
    assert exc_info.value is err
    assert err.get("field") == ["message"]
    assert str(err) == "field: message; "