"""Datetime parsing: lax input -> strict output."""

from __future__ import annotations

from datetime import datetime, timezone

import pendulum
from pendulum.parsing.exceptions import ParserError

# Strict storage format: fixed-width UTC so lexical order equals time order.
STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%S.%f+00:00"


def parse_datetime(value: str | datetime, default_tz: str = "UTC") -> datetime:
    """Parse a lax datetime string into a timezone-aware datetime.

    Accepts ISO 8601 variants (``2026-02-02T22:21:29Z``,
    ``2026-02-02 22:21:29.975359+00``), bare dates (``2026-02-02``) and
    aware or naive ``datetime`` objects. Missing timezone defaults to
    *default_tz*.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            tz = pendulum.timezone(default_tz)
            value = value.replace(tzinfo=tz)  # type: ignore[arg-type]
        return value

    value_str = value.strip()
    if not value_str:
        raise ValueError("Empty datetime value")

    try:
        parsed = pendulum.parse(value_str, tz=default_tz, strict=False)
    except ParserError as exc:
        raise ValueError(f"Invalid datetime: {value_str}") from exc
    if not isinstance(parsed, pendulum.DateTime):
        # pendulum.parse returns Date for date-only strings
        parsed = pendulum.datetime(
            parsed.year, parsed.month, parsed.day, tz=default_tz  # type: ignore[union-attr]
        )
    return parsed  # type: ignore[return-value]


def format_timestamp(dt: datetime) -> str:
    """Format a datetime in the strict storage format (always UTC, microseconds)."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(STORAGE_FORMAT)


def normalize_timestamp(value: str | datetime) -> str:
    """Parse a lax timestamp and return it in storage format."""
    return format_timestamp(parse_datetime(value))


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(timezone.utc)
