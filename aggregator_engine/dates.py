from __future__ import annotations

import datetime as dt
from typing import Any

import pandas as pd


def ensure_utc(dt_like: dt.datetime) -> dt.datetime:
    if dt_like.tzinfo is None:
        return dt_like.replace(tzinfo=dt.timezone.utc)
    return dt_like.astimezone(dt.timezone.utc)


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def parse_datetime(value: Any) -> dt.datetime:
    """Parse loose date input into an aware UTC datetime.

    Parameters
    ----------
    value : datetime, str, int or float
        Datetimes are normalized to UTC (naive values are taken as UTC).
        Strings accept anything ``pandas.to_datetime`` understands. Numbers
        are Unix epoch seconds.

    Returns
    -------
    datetime.datetime
        Timezone-aware datetime in UTC.

    Raises
    ------
    ValueError
        When the value cannot be interpreted as a point in time.
    """
    if isinstance(value, dt.datetime):
        return ensure_utc(value)
    if isinstance(value, bool) or value is None or value == "":
        raise ValueError(f"Invalid date: {value!r}")
    try:
        if isinstance(value, (int, float)):
            ts = pd.to_datetime(value, unit="s", utc=True)
        else:
            ts = pd.to_datetime(value, utc=True)
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Invalid date: {value!r}") from e
    if pd.isna(ts):
        raise ValueError(f"Invalid date: {value!r}")
    return ts.to_pydatetime()
