"""
UTC timestamp helpers.

Statute cache rows and case records carry timezone-aware UTC datetimes;
JSON payloads carry the ISO form with a Z suffix.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware datetime in UTC."""
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Current UTC time, e.g. "2026-10-18T03:00:00.123456Z"."""
    return to_iso(utc_now())


def to_iso(dt: datetime) -> str:
    """ISO 8601 with Z suffix; naive datetimes are taken to be UTC already."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
