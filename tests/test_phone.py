"""Tests for phone number normalization."""

from __future__ import annotations

import pytest

from relaykit.core.errors import InvalidInput, InvalidPhoneNumber
from relaykit.phone import (
    is_valid_phone,
    national_prefix_matches,
    normalize_phone,
    to_e164,
)
from relaykit.store.memory import InMemoryStore
from tests.conftest import make_owned


class TestToE164:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("5551234567", "+15551234567"),
            ("+44 20 7946 0958", "+442079460958"),
            ("15551234567", "+15551234567"),
            ("(555) 123-4567", "+15551234567"),
            ("555.123.4567", "+15551234567"),
            ("1-555-123-4567", "+15551234567"),
            ("+1 (415) 555-0101", "+14155550101"),
            ("  +15551234567  ", "+15551234567"),
            ("442079460958", "+442079460958"),
        ],
    )
    def test_valid(self, raw: str, expected: str) -> None:
        assert to_e164(raw) == expected

    @pytest.mark.parametrize("raw", ["123", "", "   ", "+", "+()-", "abc", "555123456", None])
    def test_invalid(self, raw: str | None) -> None:
        assert to_e164(raw) is None

    def test_eleven_digits_not_starting_with_one_is_international(self) -> None:
        assert to_e164("25551234567") == "+25551234567"

    def test_non_us_region_has_no_national_rule(self) -> None:
        assert to_e164("5551234567", default_region="GB") is None
        assert to_e164("447946095800", default_region="GB") == "+447946095800"

    def test_deterministic(self) -> None:
        assert to_e164("(555) 123-4567") == to_e164("(555) 123-4567")


class TestNormalizePhone:
    def test_returns_e164(self) -> None:
        assert normalize_phone("555-123-4567") == "+15551234567"

    def test_raises_invalid_phone_number(self) -> None:
        with pytest.raises(InvalidPhoneNumber) as exc_info:
            normalize_phone("123")
        assert exc_info.value.raw == "123"

    def test_invalid_phone_number_is_invalid_input(self) -> None:
        with pytest.raises(InvalidInput):
            normalize_phone("")

    def test_is_valid_phone(self) -> None:
        assert is_valid_phone("+15551234567") is True
        assert is_valid_phone("123") is False


class TestNationalPrefixMatches:
    def test_us_area_code(self) -> None:
        assert national_prefix_matches("+14155550101", "US", "415") is True
        assert national_prefix_matches("+12125550103", "US", "415") is False

    def test_other_country(self) -> None:
        assert national_prefix_matches("+442079460958", "GB", "20") is True
        assert national_prefix_matches("+442079460958", "GB", "161") is False

    def test_no_prefix_matches_everything(self) -> None:
        assert national_prefix_matches("+12125550103", "US", None) is True
        assert national_prefix_matches("+12125550103", "US", "") is True


class TestLookupRequiresNormalization:
    async def test_raw_number_misses_normalized_number_hits(self, store: InMemoryStore) -> None:
        await store.insert_owned_number(make_owned(phone_number="+14155550101"))

        raw = "(415) 555-0101"
        assert await store.get_owned_number_by_number(raw) is None

        found = await store.get_owned_number_by_number(normalize_phone(raw))
        assert found is not None
        assert found.phone_number == "+14155550101"

    async def test_formatting_variants_resolve_to_same_record(self, store: InMemoryStore) -> None:
        await store.insert_owned_number(make_owned(phone_number="+14155550101"))
        for raw in ("4155550101", "14155550101", "+1 415 555 0101", "415.555.0101"):
            found = await store.get_owned_number_by_number(normalize_phone(raw))
            assert found is not None, raw
