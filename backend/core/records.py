"""
records.py — Date normalization at the record ingestion boundary.

Record stores hand back dates in several shapes: native date/datetime,
pandas Timestamps, ISO strings, epoch numbers, wrapped timestamp objects
(anything exposing to_datetime() / toDate()) and serialized timestamp
dicts ({"seconds": ..., "nanoseconds": ...}).  Everything downstream
works with a single representation: a naive datetime in UTC.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional, Tuple

import numpy as np
import pandas as pd

from core.errors import MalformedDateError

logger = logging.getLogger(__name__)

# Epoch numbers above this are taken to be milliseconds.
_EPOCH_MS_THRESHOLD = 1e11


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _from_epoch(value: float) -> datetime:
    seconds = value / 1000.0 if abs(value) > _EPOCH_MS_THRESHOLD else value
    return datetime(1970, 1, 1) + timedelta(seconds=seconds)


def is_missing(value: Any) -> bool:
    """True for None and NaN/NaT-like values coming out of DataFrames."""
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def parse_datetime(value: Any) -> datetime:
    """
    Strictly convert a raw date value to a naive UTC datetime.
    Raises MalformedDateError when the value cannot be understood.
    """
    if is_missing(value):
        raise MalformedDateError("Date value is missing.")

    if isinstance(value, pd.Timestamp):
        return _to_naive_utc(value.to_pydatetime())
    if isinstance(value, datetime):
        return _to_naive_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, np.datetime64):
        return _to_naive_utc(pd.Timestamp(value).to_pydatetime())

    # Wrapped timestamp objects from document stores.
    for attr in ("to_datetime", "toDate", "to_pydatetime"):
        convert = getattr(value, attr, None)
        if callable(convert):
            try:
                return parse_datetime(convert())
            except MalformedDateError:
                raise
            except Exception as exc:
                raise MalformedDateError(f"Could not unwrap timestamp {value!r}: {exc}") from exc

    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        if seconds is None:
            raise MalformedDateError(f"Unrecognized timestamp mapping: {value!r}")
        nanos = value.get("nanoseconds", value.get("_nanoseconds")) or 0
        try:
            return datetime(1970, 1, 1) + timedelta(seconds=float(seconds), microseconds=float(nanos) / 1000.0)
        except (TypeError, ValueError, OverflowError) as exc:
            raise MalformedDateError(f"Invalid timestamp mapping: {value!r}") from exc

    if isinstance(value, (bool, np.bool_)):
        raise MalformedDateError(f"Boolean is not a date: {value!r}")

    if isinstance(value, (int, float, np.integer, np.floating)):
        try:
            return _from_epoch(float(value))
        except (OverflowError, ValueError) as exc:
            raise MalformedDateError(f"Epoch value out of range: {value!r}") from exc

    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise MalformedDateError("Date string is empty.")
        parsed = pd.to_datetime(text, errors="coerce", utc=True)
        if pd.isna(parsed):
            raise MalformedDateError(f"Unparseable date string: {value!r}")
        return _to_naive_utc(parsed.to_pydatetime())

    raise MalformedDateError(f"Unsupported date type {type(value).__name__}: {value!r}")


def to_datetime(value: Any, now: Optional[datetime] = None) -> datetime:
    """
    Lenient conversion used by report assembly.
    A malformed value is replaced by the current time instead of failing
    the whole report.
    """
    try:
        return parse_datetime(value)
    except MalformedDateError as exc:
        fallback = now or utcnow()
        logger.warning("Malformed date %r, using %s instead (%s)", value, fallback.isoformat(), exc)
        return fallback


def is_date_only(value: Any) -> bool:
    """True when the value names a calendar day rather than an instant."""
    if isinstance(value, datetime) or isinstance(value, pd.Timestamp):
        return False
    if isinstance(value, date):
        return True
    if isinstance(value, str):
        text = value.strip()
        return len(text) == 10 and text[4] == "-" and text[7] == "-"
    return False


def end_of_day(dt: datetime) -> datetime:
    return datetime.combine(dt.date(), time.max)


def window_bounds(start: Any, end: Any) -> Tuple[datetime, datetime]:
    """
    Normalize an inclusive [start, end] window.
    A date-only end covers the whole of that day.
    """
    start_dt = parse_datetime(start)
    end_dt = parse_datetime(end)
    if is_date_only(end):
        end_dt = end_of_day(end_dt)
    if end_dt < start_dt:
        raise MalformedDateError(
            f"Window end {end_dt.isoformat()} is before start {start_dt.isoformat()}."
        )
    return start_dt, end_dt


def week_bounds(value: Any) -> Tuple[datetime, datetime]:
    """Monday 00:00 to Sunday 23:59:59.999999 of the week containing value."""
    dt = parse_datetime(value)
    monday = datetime.combine((dt - timedelta(days=dt.weekday())).date(), time.min)
    return monday, end_of_day(monday + timedelta(days=6))


def in_window(dt: datetime, start: datetime, end: datetime) -> bool:
    return start <= dt <= end


def epoch_millis(dt: datetime) -> int:
    """Whole milliseconds since the epoch for a naive UTC datetime (truncated)."""
    return (dt - datetime(1970, 1, 1)) // timedelta(milliseconds=1)


def isoformat(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat() + "Z"
