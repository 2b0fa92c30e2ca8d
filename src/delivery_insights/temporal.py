"""
Temporal normalizer.

Turns the timestamp strings found in raw exports into `pandas.Timestamp`
values using an explicit, ordered list of accepted patterns. Day-first and
month-first strings are indistinguishable for days <= 12, so only the
day-first layout is accepted and nothing is inferred.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Iterable, Optional

import numpy as np
import pandas as pd

from .config import (
    CANONICAL_TIMESTAMP_FORMAT,
    DAY_NAMES,
    DEFAULT_CLOCK_FORMATS,
    DEFAULT_TIMESTAMP_FORMATS,
    REFERENCE_DAY,
)
from .errors import InvalidShiftWindow, MalformedTimestamp

ONE_DAY = pd.Timedelta(days=1)


def _naive_utc(ts: pd.Timestamp) -> pd.Timestamp:
    """Offset-aware values become naive UTC so every timestamp compares with every other."""
    if ts.tzinfo is None:
        return ts
    return ts.tz_convert("UTC").tz_localize(None)


def _parse_with(text: str, formats: Iterable[str]) -> Optional[pd.Timestamp]:
    for fmt in formats:
        try:
            parsed = pd.to_datetime(text, format=fmt)
        except (ValueError, TypeError):
            continue
        if parsed is not pd.NaT:
            return _naive_utc(parsed)
    return None


def normalize_timestamp(value, formats: Optional[Iterable[str]] = None) -> pd.Timestamp:
    """
    Return `value` as a canonical `pandas.Timestamp`.

    Timestamp-like values pass through unchanged (offset-aware ones are
    converted to naive UTC), so normalizing twice is a no-op. Strings are
    matched against `formats` in order; the first match wins. Raises MalformedTimestamp when nothing matches.
    """
    formats = tuple(formats) if formats is not None else DEFAULT_TIMESTAMP_FORMATS

    if value is pd.NaT:
        raise MalformedTimestamp(value, formats)
    if isinstance(value, pd.Timestamp):
        return _naive_utc(value)
    if isinstance(value, (datetime, date, np.datetime64)):
        converted = pd.Timestamp(value)
        if converted is pd.NaT:
            raise MalformedTimestamp(value, formats)
        return _naive_utc(converted)
    if not isinstance(value, str) or not value.strip():
        raise MalformedTimestamp(value, formats)

    parsed = _parse_with(value.strip(), formats)
    if parsed is None:
        raise MalformedTimestamp(value, formats)
    return parsed


def normalize_clock_time(
    value,
    formats: Optional[Iterable[str]] = None,
    clock_formats: Optional[Iterable[str]] = None,
) -> pd.Timestamp:
    """
    Like `normalize_timestamp`, but also accepts clock-only values
    ("22:00", `datetime.time`) which are anchored on REFERENCE_DAY.
    Used for driver shift boundaries.
    """
    formats = tuple(formats) if formats is not None else DEFAULT_TIMESTAMP_FORMATS
    clock_formats = tuple(clock_formats) if clock_formats is not None else DEFAULT_CLOCK_FORMATS

    if isinstance(value, time):
        return REFERENCE_DAY + pd.Timedelta(
            hours=value.hour, minutes=value.minute, seconds=value.second
        )
    try:
        return normalize_timestamp(value, formats)
    except MalformedTimestamp:
        if not isinstance(value, str):
            raise

    parsed = _parse_with(value.strip(), clock_formats)
    if parsed is None:
        raise MalformedTimestamp(value, formats + clock_formats)
    return REFERENCE_DAY + (parsed - parsed.normalize())


def to_canonical(ts: pd.Timestamp) -> str:
    """Render a timestamp in the canonical ISO-8601 form, microseconds only when present."""
    ts = normalize_timestamp(ts)
    text = ts.strftime(CANONICAL_TIMESTAMP_FORMAT)
    if ts.microsecond:
        text += f".{ts.microsecond:06d}"
    return text


def normalize_span(start: pd.Timestamp, end: pd.Timestamp) -> pd.Timedelta:
    """
    Elapsed time from `start` to `end`. An end that precedes its start is
    read as crossing midnight and gets one day added; if it still precedes
    the start the window is invalid.
    """
    span = end - start
    if span < pd.Timedelta(0):
        span += ONE_DAY
    if span < pd.Timedelta(0):
        raise InvalidShiftWindow(
            f"Shift end {end} precedes start {start} by more than a day"
        )
    return span


def hour_of_day(ts: pd.Timestamp) -> int:
    """0-23."""
    return int(ts.hour)


def day_of_week(ts: pd.Timestamp) -> int:
    """0 = Monday ... 6 = Sunday."""
    return int(ts.dayofweek)


def day_name(index: int) -> str:
    return DAY_NAMES[index]
