# Overview: UTC timestamp helpers for ledger records and query filters.

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC. Every ledger timestamp column stores this form."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str], end_of_day: bool = False) -> Optional[datetime]:
    """
    created_from / created_to filter values -> naive UTC.

    Accepts a bare date, a naive datetime (taken as UTC), or an offset /
    trailing "Z" datetime. Raises ValueError on anything else.

    With end_of_day, a bare date means its last microsecond, so an
    inclusive upper bound of "2026-03-05" keeps that whole day.
    """
    if value is None or not value.strip():
        return None

    text = value.strip()
    if end_of_day and len(text) == 10:
        day = date.fromisoformat(text)
        return datetime.combine(day, datetime.min.time()) + timedelta(days=1, microseconds=-1)
    if text[-1] in ("Z", "z"):
        text = f"{text[:-1]}+00:00"
    return _as_naive_utc(datetime.fromisoformat(text))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Wire format for timestamps: second precision, trailing Z."""
    if dt is None:
        return None
    stamp = dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt.astimezone(timezone.utc)
    return stamp.replace(microsecond=0).isoformat().replace("+00:00", "Z")
