from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Tuple, Type

from sqlalchemy import Boolean, DateTime, Float, Integer

from .models import Base, NewsRecord, WeatherRecord
from .validation import NEWS_TEXT, WEATHER_TEXT, validate_news, validate_weather

Validator = Callable[..., Dict[str, Any]]


def _field_type(column) -> str:
    if isinstance(column.type, DateTime):
        return "date"
    if isinstance(column.type, Boolean):
        return "boolean"
    if isinstance(column.type, Integer):
        return "integer"
    if isinstance(column.type, Float):
        return "number"
    return "string"


@dataclass(frozen=True)
class EntitySpec:
    """Everything the generic repository needs to know about one table."""

    name: str
    model: Type[Base]
    validator: Validator
    text_fields: Tuple[str, ...]
    unique_fields: Tuple[str, ...] = ()
    default_order: Tuple[Tuple[str, str], ...] = ()
    timestamps: Tuple[str, ...] = ("created_at",)

    @property
    def table(self):
        return self.model.__table__

    @property
    def columns(self) -> Tuple[str, ...]:
        return tuple(c.name for c in self.table.columns)

    @property
    def field_types(self) -> Mapping[str, str]:
        return MappingProxyType({c.name: _field_type(c) for c in self.table.columns})


WEATHER = EntitySpec(
    name="weather",
    model=WeatherRecord,
    validator=validate_weather,
    text_fields=WEATHER_TEXT,
    default_order=(("timestamp", "DESC"),),
    timestamps=("created_at", "updated_at"),
)

NEWS = EntitySpec(
    name="news",
    model=NewsRecord,
    validator=validate_news,
    text_fields=NEWS_TEXT,
    unique_fields=("url",),
    default_order=(("published_at", "DESC"),),
)

ENTITIES: Mapping[str, EntitySpec] = MappingProxyType({"weather": WEATHER, "news": NEWS})
