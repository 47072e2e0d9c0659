import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from aiskit.ids import ulid


def test_generate_not_zero_and_length():
    uid = ulid.generate()
    assert not ulid.is_zero(uid)
    assert len(str(uid)) == 26


def test_generate_string_parses():
    text = ulid.generate_string()
    assert len(text) == 26
    assert str(ulid.parse(text)) == text


def test_generate_with_time_roundtrip():
    t0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
    uid = ulid.generate_with_time(t0)
    assert ulid.time_of(uid) == t0
    assert ulid.time_of(uid).isoformat() == "2024-01-01T00:00:00+00:00"


def test_parse_roundtrip():
    original = ulid.generate()
    parsed = ulid.parse(str(original))
    assert ulid.compare(original, parsed) == 0


def test_parse_known_value():
    s = "01ARZ3NDEKTSV4RRFFQ69G5FAV"
    assert str(ulid.parse(s)) == s


def test_parse_is_case_insensitive():
    s = "01ARZ3NDEKTSV4RRFFQ69G5FAV"
    assert ulid.parse(s.lower()) == ulid.parse(s)


@pytest.mark.parametrize("bad", ["invalid-ulid", "", "01ARZ3NDEKTSV4RRFFQ69G5FA!", "81ARZ3NDEKTSV4RRFFQ69G5FAV"])
def test_parse_invalid(bad):
    with pytest.raises(ValueError):
        ulid.parse(bad)


def test_compare_later_is_greater():
    id1 = ulid.generate()
    time.sleep(0.002)
    id2 = ulid.generate()
    assert ulid.compare(id1, id2) == -1
    assert ulid.compare(id2, id1) == 1
    assert ulid.compare(id1, id1) == 0


def test_compare_with_times():
    t0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
    id1 = ulid.generate_with_time(t0)
    id2 = ulid.generate_with_time(t0 + timedelta(milliseconds=1))
    id3 = ulid.generate_with_time(t0 + timedelta(milliseconds=2))
    assert ulid.compare(id1, id2) == -1
    assert ulid.compare(id2, id3) < 0


def test_zero():
    assert ulid.is_zero(ulid.zero())
    assert str(ulid.zero()) == "0" * 26
    assert not ulid.is_zero(ulid.generate())


def test_generate_batch_unique_and_sorted():
    ids = ulid.generate_batch(100)
    assert len(ids) == 100
    assert len({str(i) for i in ids}) == 100
    assert all(ulid.compare(a, b) < 0 for a, b in zip(ids, ids[1:]))


def test_generate_batch_small_sorted():
    ids = ulid.generate_batch(5)
    assert len(ids) == 5
    assert ids == sorted(ids)
    assert len(set(ids)) == 5


@pytest.mark.parametrize("count", [0, -1])
def test_generate_batch_zero_or_negative(count):
    assert ulid.generate_batch(count) == []


def test_generate_batch_string():
    strs = ulid.generate_batch_string(50)
    assert len(strs) == 50
    assert all(len(s) == 26 for s in strs)


def test_generator_distinct():
    gen = ulid.Generator(None)
    first = gen.generate()
    second = gen.generate()
    assert ulid.compare(first, second) == -1


def test_generator_string():
    assert len(ulid.Generator(None).generate_string()) == 26


def test_generator_with_time():
    gen = ulid.Generator(None)
    t = datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc)
    assert ulid.time_of(gen.generate_with_time(t)) == t


def test_generator_monotonic_with_fixed_entropy():
    gen = ulid.Generator(lambda n: bytes(n))
    t = datetime(2024, 1, 1, tzinfo=timezone.utc)
    first = gen.generate_with_time(t)
    second = gen.generate_with_time(t)
    assert str(first).endswith("0" * 16)
    assert str(second).endswith("0" * 15 + "1")
    assert first.timestamp_ms() == second.timestamp_ms() == 1704067200000


def test_generator_overflow():
    gen = ulid.Generator(lambda n: b"\xff" * n)
    t = datetime(2024, 1, 1, tzinfo=timezone.utc)
    gen.generate_with_time(t)
    with pytest.raises(OverflowError):
        gen.generate_with_time(t)


def test_generator_rejects_pre_epoch_time():
    with pytest.raises(ValueError):
        ulid.Generator(None).generate_with_time(datetime(1960, 1, 1, tzinfo=timezone.utc))


def test_concurrency_unique():
    with ThreadPoolExecutor(max_workers=10) as pool:
        futures = [pool.submit(ulid.generate) for _ in range(1000)]
        results = [future.result() for future in futures]
    assert len(results) == 1000
    assert len({str(r) for r in results}) == 1000
    assert not any(ulid.is_zero(r) for r in results)


def test_time_ordering():
    ids = []
    for _ in range(10):
        ids.append(ulid.generate())
        time.sleep(0.001)
    assert all(ulid.compare(a, b) < 0 for a, b in zip(ids, ids[1:]))


def test_format_characters():
    text = ulid.generate_string()
    assert set(text) <= set("0123456789ABCDEFGHJKMNPQRSTVWXYZ")


def test_to_uuid_preserves_bytes():
    uid = ulid.generate()
    u = ulid.to_uuid(uid)
    assert u.bytes == bytes(uid)
    assert u != uuid.UUID(int=0)


def test_from_uuid_preserves_bytes():
    u = uuid.uuid4()
    uid = ulid.from_uuid(u)
    assert bytes(uid) == u.bytes
    assert not ulid.is_zero(uid)


def test_ulid_uuid_roundtrip():
    original = ulid.generate()
    assert ulid.compare(original, ulid.from_uuid(ulid.to_uuid(original))) == 0


def test_uuid_ulid_roundtrip():
    original = uuid.uuid4()
    assert ulid.to_uuid(ulid.from_uuid(original)) == original


def test_to_uuid_string():
    text = ulid.to_uuid_string(ulid.generate())
    assert len(text) == 36
    assert str(uuid.UUID(text)) == text


def test_from_uuid_string_roundtrip():
    s = "550e8400-e29b-41d4-a716-446655440000"
    uid = ulid.from_uuid_string(s)
    assert not ulid.is_zero(uid)
    assert ulid.to_uuid_string(uid) == s


def test_uuid_string_roundtrip_with_time():
    original = ulid.generate_with_time(datetime(2024, 1, 1, tzinfo=timezone.utc))
    converted = ulid.from_uuid_string(ulid.to_uuid_string(original))
    assert ulid.compare(original, converted) == 0


@pytest.mark.parametrize("bad", ["invalid-uuid", "123", "", "550e8400-e29b-41d4-a716"])
def test_from_uuid_string_invalid(bad):
    with pytest.raises(ValueError):
        ulid.from_uuid_string(bad)


@pytest.mark.parametrize(
    "text",
    [
        "550e8400-e29b-41d4-a716-446655440000",
        "550E8400-E29B-41D4-A716-446655440000",
        "550e8400e29b41d4a716446655440000",
        "urn:uuid:550e8400-e29b-41d4-a716-446655440000",
        "{550e8400-e29b-41d4-a716-446655440000}",
    ],
)
def test_uuid_string_formats(text):
    uid = ulid.from_uuid_string(text)
    assert ulid.to_uuid_string(uid) == "550e8400-e29b-41d4-a716-446655440000"


@pytest.mark.parametrize(
    "uuid_text, expected",
    [
        ("550e8400-e29b-41d4-a716-446655440000", "2N1T201RMV87AAE5J4CSAM8000"),
        ("6ba7b810-9dad-11d1-80b4-00c04fd430c8", "3BMYW117DD278R1D00R17X8C68"),
    ],
)
def test_migration_values(uuid_text, expected):
    assert str(ulid.from_uuid_string(uuid_text)) == expected


def test_ulid_rejects_wrong_length():
    with pytest.raises(ValueError):
        ulid.ULID(b"\x00" * 15)