"""Timestamp helpers shared by the store and the services.

Timestamps are persisted as fixed-width ISO-8601 strings in UTC
(``2026-10-17T13:54:00.123456+00:00``) so that the store's plain string
ordering is chronological ordering.  Concert dates are stored as
``YYYY-MM-DD``.
"""

from __future__ import annotations

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_timestamp(value: datetime) -> str:
    """Serialize *value* as a fixed-width UTC ISO-8601 string."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_timestamp(raw: str | datetime) -> datetime:
    """Parse a persisted timestamp back into an aware UTC datetime."""
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(raw)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def now_timestamp() -> str:
    return to_timestamp(utc_now())


def to_date_string(value: date | datetime) -> str:
    if isinstance(value, datetime):
        value = value.astimezone(timezone.utc).date() if value.tzinfo else value.date()
    return value.isoformat()


def from_date_string(raw: str | date) -> date:
    if isinstance(raw, date):
        return raw
    # Tolerate full timestamps written by older clients.
    return date.fromisoformat(raw[:10])
