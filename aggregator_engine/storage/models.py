from __future__ import annotations

import datetime as dt
from typing import Optional

from sqlalchemy import DateTime, Float, Index, Integer, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for aggregator tables."""


class WeatherRecord(Base):
    """Normalized weather snapshot from one provider for one city.

    Units are standardized regardless of provider:
    - temperature, feels_like, temp_min, temp_max: Celsius
    - humidity: percent (0-100)
    - pressure: hectopascals
    - wind_speed: meters per second
    - wind_direction: degrees (0-360)
    """

    __tablename__ = "weather"
    __table_args__ = (Index("ix_weather_city_provider_timestamp", "city", "provider", "timestamp"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    city: Mapped[str] = mapped_column(String(128), nullable=False)
    country: Mapped[str] = mapped_column(String(64), nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)

    temperature: Mapped[float] = mapped_column(Float, nullable=False)
    feels_like: Mapped[float] = mapped_column(Float, nullable=False)
    temp_min: Mapped[float] = mapped_column(Float, nullable=False)
    temp_max: Mapped[float] = mapped_column(Float, nullable=False)
    humidity: Mapped[int] = mapped_column(Integer, nullable=False)
    pressure: Mapped[int] = mapped_column(Integer, nullable=False)
    wind_speed: Mapped[float] = mapped_column(Float, nullable=False)
    wind_direction: Mapped[int] = mapped_column(Integer, nullable=False)

    condition_main: Mapped[str] = mapped_column(String(64), nullable=False)
    condition_description: Mapped[str] = mapped_column(String(255), nullable=False)
    condition_icon: Mapped[str] = mapped_column(String(16), nullable=False)

    timestamp: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class NewsRecord(Base):
    """News article; ``url`` is the natural deduplication key."""

    __tablename__ = "news"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    content: Mapped[str] = mapped_column(Text, nullable=False)
    url: Mapped[str] = mapped_column(String(1024), unique=True, nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    published_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    source_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    author: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    provider: Mapped[str] = mapped_column(String(32), nullable=False, default="newsapi")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def build_engine(database_url: str, **kwargs) -> Engine:
    return create_engine(database_url, future=True, **kwargs)


def create_tables(engine: Engine) -> None:
    """Create all aggregator tables if they do not exist.

    Parameters
    ----------
    engine : sqlalchemy.Engine
        SQLAlchemy engine for the target database.
    """
    Base.metadata.create_all(bind=engine)
