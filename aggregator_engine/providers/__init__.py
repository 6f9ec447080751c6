"""Providers subpackage.

HTTP clients, transformers and service facades for OpenWeatherMap,
AccuWeather and NewsAPI.
"""

from .base import NewsProvider, NewsService, WeatherProvider, WeatherService
from .factory import create_news_service, create_weather_service
from .transformer import BaseTransformer, WeatherTransformer

__all__ = [
    "BaseTransformer",
    "WeatherTransformer",
    "WeatherProvider",
    "NewsProvider",
    "WeatherService",
    "NewsService",
    "create_weather_service",
    "create_news_service",
]
