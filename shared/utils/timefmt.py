"""
Time helpers: epoch milliseconds and Tashkent (UTC+5) wire timestamps.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

# Uzbekistan has no DST; a fixed offset avoids a tzdata dependency
TASHKENT_TZ = timezone(timedelta(hours=5), "UZT")

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def now_ms() -> int:
    return to_epoch_ms(utcnow())


def to_epoch_ms(dt: datetime) -> int:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def from_epoch_ms(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def _in_tashkent(dt: Optional[datetime]) -> datetime:
    dt = dt or utcnow()
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(TASHKENT_TZ)


def tashkent_timestamp(dt: Optional[datetime] = None) -> str:
    """Format as ``YYYY-MM-DD HH:mm:ss`` in Tashkent time."""
    return _in_tashkent(dt).strftime("%Y-%m-%d %H:%M:%S")


def tashkent_check_timestamp(dt: Optional[datetime] = None) -> str:
    """Format as ``EEE MMM dd HH:mm:ss UZT yyyy`` (e.g. ``Tue Dec 30 10:29:03 UZT 2025``)."""
    local = _in_tashkent(dt)
    return (
        f"{_WEEKDAYS[local.weekday()]} {_MONTHS[local.month - 1]} {local.day:02d} "
        f"{local:%H:%M:%S} UZT {local.year}"
    )


def parse_range_bound(value: object) -> datetime:
    """Parse a statement range bound: epoch-ms number, ISO string or Tashkent wall time."""
    if isinstance(value, bool):
        raise ValueError(f"invalid range bound: {value!r}")
    if isinstance(value, (int, float)):
        return from_epoch_ms(int(value))
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.isdigit():
            return from_epoch_ms(int(text))
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValueError(f"invalid range bound: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=TASHKENT_TZ)
    return parsed.astimezone(timezone.utc)
