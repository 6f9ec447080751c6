"""Storage subpackage: tables, validation, backends and the generic repository."""

from .entities import NEWS, WEATHER, EntitySpec
from .factory import (
    RepositoryType,
    create_news_repository,
    create_repository,
    create_weather_repository,
)
from .interface import REQUIRED_METHODS, StorageBackend
from .models import NewsRecord, WeatherRecord, build_engine, create_tables
from .repository import NewsRepository, Repository, WeatherRepository
from .validation import sanitize_string, validate_news, validate_weather

__all__ = [
    "EntitySpec",
    "WEATHER",
    "NEWS",
    "RepositoryType",
    "create_repository",
    "create_weather_repository",
    "create_news_repository",
    "REQUIRED_METHODS",
    "StorageBackend",
    "WeatherRecord",
    "NewsRecord",
    "build_engine",
    "create_tables",
    "Repository",
    "WeatherRepository",
    "NewsRepository",
    "sanitize_string",
    "validate_weather",
    "validate_news",
]
