"""Tests for ULID helpers."""

from ulid import ULID

from nestledger.utils.ulid import generate_prefixed_ulid, generate_ulid, parse_ulid


class TestULID:
  def test_generate(self):
    value = generate_ulid()

    assert len(value) == 26
    assert isinstance(parse_ulid(value), ULID)

  def test_prefixed(self):
    value = generate_prefixed_ulid("inv")

    assert value.startswith("inv_")
    assert len(value) == 30
    assert str(parse_ulid(value)) == value[4:]

  def test_ordered_by_time(self):
    first = ULID.from_timestamp(1_700_000_000)
    second = ULID.from_timestamp(1_700_000_001)

    assert str(first) < str(second)

  def test_parse_invalid(self):
    assert parse_ulid("inv_not-a-ulid") is None
    assert parse_ulid("") is None
