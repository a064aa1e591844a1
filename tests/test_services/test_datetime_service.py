"""Tests for timestamp parsing and formatting."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from backend.services.datetime_service import (
    format_timestamp,
    normalize_timestamp,
    parse_datetime,
)


class TestFormatTimestamp:
    def test_always_includes_microseconds(self) -> None:
        dt = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)
        assert format_timestamp(dt) == "2026-03-01T09:00:00.000000+00:00"

    def test_converts_to_utc(self) -> None:
        dt = datetime(2026, 3, 1, 18, 0, 0, tzinfo=timezone(timedelta(hours=9)))
        assert format_timestamp(dt) == "2026-03-01T09:00:00.000000+00:00"

    def test_naive_treated_as_utc(self) -> None:
        assert format_timestamp(datetime(2026, 3, 1)) == "2026-03-01T00:00:00.000000+00:00"

    def test_lexical_order_matches_time_order(self) -> None:
        earlier = format_timestamp(datetime(2026, 3, 1, 9, 0, 0, 999999, tzinfo=timezone.utc))
        later = format_timestamp(datetime(2026, 3, 1, 9, 0, 1, tzinfo=timezone.utc))
        assert earlier < later


class TestParse:
    def test_iso_with_z(self) -> None:
        assert normalize_timestamp("2026-03-01T09:00:00Z") == "2026-03-01T09:00:00.000000+00:00"

    def test_date_only(self) -> None:
        assert normalize_timestamp("2026-03-01") == "2026-03-01T00:00:00.000000+00:00"

    def test_invalid_raises_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_datetime("not a date")

    def test_empty_raises_value_error(self) -> None:
        with pytest.raises(ValueError, match="Empty"):
            parse_datetime("  ")
