"""Timestamp parsing and formatting helpers."""

from __future__ import annotations

from datetime import date, datetime, timezone

from dateutil import parser


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | datetime | date) -> datetime:
    """Parse an ISO-8601 value into an aware UTC datetime.

    Naive values are taken as UTC. Raises ``ValueError`` for malformed input.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        parsed = parser.isoparse(value.strip())
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_iso(value: datetime) -> str:
    return parse_timestamp(value).isoformat(timespec="seconds")
