from __future__ import annotations

from typing import Any

from .accuweather import AccuWeatherService
from .base import NewsProvider, NewsService, WeatherProvider, WeatherService
from .newsapi import NewsApiService
from .openweathermap import OpenWeatherMapService

_WEATHER_SERVICES = {
    WeatherProvider.OPENWEATHERMAP: OpenWeatherMapService,
    WeatherProvider.ACCUWEATHER: AccuWeatherService,
}

_NEWS_SERVICES = {
    NewsProvider.NEWSAPI: NewsApiService,
}


def create_weather_service(
    provider: str | WeatherProvider,
    api_key: str,
    **client_kwargs: Any,
) -> WeatherService:
    try:
        key = WeatherProvider(str(getattr(provider, "value", provider)).lower())
    except ValueError:
        raise ValueError(f"Unsupported weather provider: {provider}") from None
    return _WEATHER_SERVICES[key](api_key, **client_kwargs)


def create_news_service(
    api_key: str,
    provider: str | NewsProvider = NewsProvider.NEWSAPI,
    **client_kwargs: Any,
) -> NewsService:
    try:
        key = NewsProvider(str(getattr(provider, "value", provider)).lower())
    except ValueError:
        raise ValueError(f"Unsupported news provider: {provider}") from None
    return _NEWS_SERVICES[key](api_key, **client_kwargs)
