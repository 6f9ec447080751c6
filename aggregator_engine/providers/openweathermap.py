from __future__ import annotations

from typing import Any, Dict, List

from ..errors import UpstreamProviderError
from .base import WeatherProvider, WeatherService
from .client import BaseApiClient
from .transformer import WeatherTransformer

PROVIDER = WeatherProvider.OPENWEATHERMAP.value


class OpenWeatherMapClient(BaseApiClient):
    """OpenWeatherMap REST client.

    Cities are geocoded first (`/geo/1.0/direct`) and weather is then requested by
    coordinates, which avoids the ambiguity of the deprecated `q=` lookup.
    Requests use `units=metric`, so no unit conversion happens downstream.
    """

    def __init__(self, api_key: str, **kwargs: Any) -> None:
        super().__init__(
            provider=PROVIDER,
            base_url="https://api.openweathermap.org",
            default_params={"appid": api_key, "units": "metric"},
            **kwargs,
        )

    def get_coordinates(self, city: str) -> Dict[str, float]:
        hits = self.get("/geo/1.0/direct", {"q": city, "limit": 1, "units": None})
        if not hits:
            raise UpstreamProviderError(self.provider, f'City "{city}" not found', status_code=404)
        return {"lat": hits[0]["lat"], "lon": hits[0]["lon"]}

    def get_current_weather(self, city: str) -> Dict[str, Any]:
        coords = self.get_coordinates(city)
        return self.get("/data/2.5/weather", coords)

    def get_forecast(self, city: str) -> Dict[str, Any]:
        coords = self.get_coordinates(city)
        return self.get("/data/2.5/forecast", coords)


class OpenWeatherMapTransformer(WeatherTransformer):
    provider = PROVIDER

    def validate(self, raw: Any) -> bool:
        if not isinstance(raw, dict):
            return False
        if "list" in raw:
            items = raw.get("list")
            return bool(
                isinstance(items, list)
                and items
                and isinstance(raw.get("city"), dict)
                and _entry_ok(items[0])
            )
        return _entry_ok(raw)

    def transform(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        if "list" in raw:
            return self._transform_forecast(raw)
        return self._transform_current(raw)

    def _transform_current(self, data: Dict[str, Any]) -> Dict[str, Any]:
        coord = data.get("coord") or {}
        location = self._normalize_location(data.get("name"), (data.get("sys") or {}).get("country"))
        return {
            "provider": PROVIDER,
            **location,
            "latitude": coord.get("lat"),
            "longitude": coord.get("lon"),
            **self._measurements(data),
        }

    def _transform_forecast(self, data: Dict[str, Any]) -> Dict[str, Any]:
        city = data["city"]
        coord = city.get("coord") or {}
        location = self._normalize_location(city.get("name"), city.get("country"))
        entries: List[Dict[str, Any]] = [self._measurements(item) for item in data["list"]]
        return {
            "provider": PROVIDER,
            **location,
            "latitude": coord.get("lat"),
            "longitude": coord.get("lon"),
            "forecast": entries,
        }

    def _measurements(self, item: Dict[str, Any]) -> Dict[str, Any]:
        main = item["main"]
        wind = item["wind"]
        condition = item["weather"][0]
        return {
            "temperature": main.get("temp"),
            "feels_like": main.get("feels_like"),
            "temp_min": main.get("temp_min"),
            "temp_max": main.get("temp_max"),
            "humidity": main.get("humidity"),
            "pressure": main.get("pressure"),
            "wind_speed": wind.get("speed"),
            "wind_direction": wind.get("deg"),
            "condition_main": condition.get("main"),
            "condition_description": condition.get("description"),
            "condition_icon": condition.get("icon"),
            "timestamp": self._epoch_to_utc(item.get("dt")),
        }


def _entry_ok(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    weather = item.get("weather")
    return (
        isinstance(item.get("main"), dict)
        and isinstance(item.get("wind"), dict)
        and isinstance(weather, list)
        and bool(weather)
        and isinstance(weather[0], dict)
    )


class OpenWeatherMapService(WeatherService):
    def __init__(self, api_key: str, **client_kwargs: Any) -> None:
        super().__init__(OpenWeatherMapClient(api_key, **client_kwargs), OpenWeatherMapTransformer())

    def get_current_weather(self, city: str) -> Dict[str, Any]:
        return self._standardize(self.api_client.get_current_weather(city))

    def get_forecast(self, city: str) -> Dict[str, Any]:
        return self._standardize(self.api_client.get_forecast(city))
