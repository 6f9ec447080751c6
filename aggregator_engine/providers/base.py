from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict

from ..errors import UpstreamProviderError, ValidationError
from .client import BaseApiClient
from .transformer import BaseTransformer


class WeatherProvider(str, Enum):
    OPENWEATHERMAP = "openweathermap"
    ACCUWEATHER = "accuweather"


class NewsProvider(str, Enum):
    NEWSAPI = "newsapi"


class ProviderService(ABC):
    """Pairs a provider's HTTP client with its transformer."""

    def __init__(self, api_client: BaseApiClient, transformer: BaseTransformer) -> None:
        if not isinstance(api_client, BaseApiClient):
            raise TypeError("api_client must be a BaseApiClient")
        if not isinstance(transformer, BaseTransformer):
            raise TypeError("transformer must be a BaseTransformer")
        self.api_client = api_client
        self.transformer = transformer

    @property
    def provider(self) -> str:
        return self.api_client.provider

    def _standardize(self, raw: Any) -> Dict[str, Any]:
        # A payload that fails the structural check is a malformed upstream response
        try:
            return self.transformer.normalize(raw)
        except ValidationError as e:
            raise UpstreamProviderError(self.provider, e.message) from e


class WeatherService(ProviderService):
    @abstractmethod
    def get_current_weather(self, city: str) -> Dict[str, Any]: ...

    @abstractmethod
    def get_forecast(self, city: str) -> Dict[str, Any]: ...


class NewsService(ProviderService):
    @abstractmethod
    def get_top_headlines(self, **options: Any) -> Dict[str, Any]: ...
