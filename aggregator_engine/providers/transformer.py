from __future__ import annotations

import datetime as dt
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..errors import ValidationError
from .locations import normalize_city, normalize_country


class BaseTransformer(ABC):
    """Maps one provider's raw response into the internal record shape.

    `normalize` is the only entry point callers should use: it runs the
    structural check first so `transform` can index nested fields directly.
    """

    provider: str = "unknown"

    def normalize(self, raw: Any) -> Dict[str, Any]:
        if not self.validate(raw):
            raise ValidationError(f"Invalid data structure received from {self.provider}")
        return self.transform(raw)

    @abstractmethod
    def validate(self, raw: Any) -> bool: ...

    @abstractmethod
    def transform(self, raw: Any) -> Dict[str, Any]: ...


class WeatherTransformer(BaseTransformer):
    """Adds location normalization and unit helpers shared by weather providers."""

    def _normalize_location(self, city: Optional[str], country: Optional[str]) -> Dict[str, str]:
        return {"city": normalize_city(city), "country": normalize_country(country)}

    @staticmethod
    def _epoch_to_utc(seconds: Optional[float]) -> dt.datetime:
        if seconds is None:
            return dt.datetime.now(dt.timezone.utc)
        return dt.datetime.fromtimestamp(float(seconds), tz=dt.timezone.utc)

    @staticmethod
    def _inches_to_hpa(inches: Any) -> Optional[int]:
        if not _is_number(inches):
            return None
        return int(round(inches * 33.8639))

    @staticmethod
    def _fahrenheit_to_celsius(fahrenheit: Any) -> Optional[float]:
        if not _is_number(fahrenheit):
            return None
        return (fahrenheit - 32) * 5.0 / 9.0

    @staticmethod
    def _mph_to_ms(mph: Any) -> Optional[float]:
        if not _is_number(mph):
            return None
        return mph * 0.44704

    @staticmethod
    def _kmh_to_ms(kmh: Any) -> Optional[float]:
        if not _is_number(kmh):
            return None
        return kmh * (1000.0 / 3600.0)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
