"""Write-time validation and sanitization for repository records.

Validators take a loose input mapping and return a new dict containing only
storable columns, with strings sanitized and numbers/dates coerced. Every
problem found is collected and reported in one ``ValidationError`` whose
``fields`` lists the offending field names.
"""

from __future__ import annotations

import datetime as dt
import re
from typing import Any, Dict, List, Mapping, Tuple

from ..dates import parse_datetime, utc_now
from ..errors import ValidationError

_SCRIPT_BLOCK = re.compile(r"<script\b[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)
_JS_SCHEME = re.compile(r"javascript:", re.IGNORECASE)
_INLINE_HANDLER = re.compile(r"\bon\w+\s*=", re.IGNORECASE)
_ESCAPED_CHARS = re.compile(r"(['\";\\])")
_HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)

WEATHER_PROVIDERS = ("openweathermap", "accuweather")
MAX_FUTURE_SKEW = dt.timedelta(hours=24)

WEATHER_REQUIRED = (
    "provider",
    "city",
    "country",
    "latitude",
    "longitude",
    "temperature",
    "feels_like",
    "temp_min",
    "temp_max",
    "humidity",
    "pressure",
    "wind_speed",
    "wind_direction",
    "condition_main",
    "condition_description",
    "condition_icon",
    "timestamp",
)
WEATHER_TEXT = ("provider", "city", "country", "condition_main", "condition_description", "condition_icon")
WEATHER_RANGES: Dict[str, Tuple[float, float]] = {
    "latitude": (-90, 90),
    "longitude": (-180, 180),
    "temperature": (-100, 70),
    "feels_like": (-100, 70),
    "temp_min": (-100, 70),
    "temp_max": (-100, 70),
    "humidity": (0, 100),
    "pressure": (800, 1200),
    "wind_speed": (0, 150),
    "wind_direction": (0, 360),
}
WEATHER_INTEGERS = ("humidity", "pressure", "wind_direction")

NEWS_REQUIRED = ("title", "content", "url", "provider")
NEWS_TEXT = ("title", "description", "content", "source_name", "author", "provider")
NEWS_URLS = ("url", "image_url")


def sanitize_string(value: Any) -> Any:
    """Strip script blocks, ``javascript:`` and inline handlers, then escape ``' " ; \\``."""
    if not isinstance(value, str):
        return value
    value = _SCRIPT_BLOCK.sub("", value)
    value = _JS_SCHEME.sub("", value)
    value = _INLINE_HANDLER.sub("", value)
    return _ESCAPED_CHARS.sub(r"\\\1", value)


def sanitize_fields(data: Mapping[str, Any], fields: Tuple[str, ...]) -> Dict[str, Any]:
    out = dict(data)
    for name in fields:
        if name in out:
            out[name] = sanitize_string(out[name])
    return out


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _raise_if(errors: List[str], fields: List[str], label: str) -> None:
    if errors:
        raise ValidationError(f"Invalid {label} data: " + "; ".join(errors), fields=fields)


def validate_weather(data: Mapping[str, Any], *, sanitize: bool = True) -> Dict[str, Any]:
    record = sanitize_fields(data, WEATHER_TEXT) if sanitize else dict(data)

    missing = [name for name in WEATHER_REQUIRED if _missing(record.get(name))]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)

    errors: List[str] = []
    bad: List[str] = []
    out: Dict[str, Any] = {name: record[name] for name in WEATHER_REQUIRED}

    for name, (low, high) in WEATHER_RANGES.items():
        value = out[name]
        if not _is_number(value):
            errors.append(f"{name} must be a number")
            bad.append(name)
        elif not low <= value <= high:
            errors.append(f"{name} must be between {low} and {high}")
            bad.append(name)
        elif name in WEATHER_INTEGERS:
            out[name] = int(round(value))

    if out["provider"] not in WEATHER_PROVIDERS:
        errors.append(f"provider must be one of {', '.join(WEATHER_PROVIDERS)}")
        bad.append("provider")

    try:
        timestamp = parse_datetime(out["timestamp"])
    except ValueError:
        errors.append("timestamp must be a valid date")
        bad.append("timestamp")
    else:
        if timestamp > utc_now() + MAX_FUTURE_SKEW:
            errors.append("timestamp cannot be more than 24 hours in the future")
            bad.append("timestamp")
        out["timestamp"] = timestamp

    _raise_if(errors, bad, "weather")
    return out


def validate_news(data: Mapping[str, Any], *, sanitize: bool = True) -> Dict[str, Any]:
    record = sanitize_fields(data, NEWS_TEXT) if sanitize else dict(data)

    missing = [name for name in NEWS_REQUIRED if _missing(record.get(name))]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)

    errors: List[str] = []
    bad: List[str] = []
    out: Dict[str, Any] = {
        "title": record["title"],
        "description": record.get("description") or "",
        "content": record["content"],
        "source_name": record.get("source_name") or None,
        "author": record.get("author") or None,
        "provider": record["provider"],
    }

    for name in NEWS_URLS:
        value = record.get(name) or None
        if value is not None and not (isinstance(value, str) and _HTTP_URL.match(value)):
            errors.append(f"{name} must start with http:// or https://")
            bad.append(name)
        out[name] = value

    published = record.get("published_at")
    if _missing(published):
        out["published_at"] = utc_now()
    else:
        try:
            out["published_at"] = parse_datetime(published)
        except ValueError:
            errors.append("published_at must be a valid date")
            bad.append("published_at")

    _raise_if(errors, bad, "news")
    return out
