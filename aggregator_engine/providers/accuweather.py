from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..errors import UpstreamProviderError
from .base import WeatherProvider, WeatherService
from .client import BaseApiClient
from .transformer import WeatherTransformer, _is_number

PROVIDER = WeatherProvider.ACCUWEATHER.value


class AccuWeatherClient(BaseApiClient):
    """AccuWeather REST client: resolve a location key, then query by key."""

    def __init__(self, api_key: str, **kwargs: Any) -> None:
        super().__init__(
            provider=PROVIDER,
            base_url="https://dataservice.accuweather.com",
            default_params={"apikey": api_key, "details": "true"},
            **kwargs,
        )

    def search_city(self, city: str) -> Dict[str, Any]:
        hits = self.get("/locations/v1/cities/search", {"q": city})
        if not hits:
            raise UpstreamProviderError(self.provider, f"City not found: {city}", status_code=404)
        return hits[0]

    def get_current_conditions(self, location_key: str) -> Dict[str, Any]:
        rows = self.get(f"/currentconditions/v1/{location_key}")
        if not rows:
            raise UpstreamProviderError(self.provider, f"No current conditions for location {location_key}")
        return rows[0]

    def get_current_weather(self, city: str) -> Dict[str, Any]:
        location = self.search_city(city)
        conditions = self.get_current_conditions(location["Key"])
        return {"location": location, "conditions": conditions}

    def get_forecast(self, city: str) -> Dict[str, Any]:
        location = self.search_city(city)
        forecast = self.get(f"/forecasts/v1/daily/5day/{location['Key']}")
        return {"location": location, "forecast": forecast}


class AccuWeatherTransformer(WeatherTransformer):
    """Normalizes AccuWeather current conditions and daily forecasts.

    Current conditions prefer the `Metric` block and fall back to `Imperial`
    with conversion. Pressure is always read from `Imperial` (inHg) and
    converted to whole hPa.
    """

    provider = PROVIDER

    def validate(self, raw: Any) -> bool:
        if not isinstance(raw, dict) or not isinstance(raw.get("location"), dict):
            return False
        return isinstance(raw.get("conditions"), dict) or isinstance(raw.get("forecast"), dict)

    def transform(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        if isinstance(raw.get("forecast"), dict):
            return self._transform_forecast(raw)
        return self._transform_current(raw)

    def _location_fields(self, location: Dict[str, Any]) -> Dict[str, Any]:
        country = (location.get("Country") or {}).get("LocalizedName") or (location.get("Country") or {}).get("ID")
        geo = location.get("GeoPosition") or {}
        return {
            **self._normalize_location(location.get("LocalizedName"), country),
            "latitude": geo.get("Latitude", 0),
            "longitude": geo.get("Longitude", 0),
        }

    def _temperature(self, block: Optional[Dict[str, Any]]) -> Optional[float]:
        block = block or {}
        metric = _value(block.get("Metric"))
        if metric is not None:
            return metric
        return self._fahrenheit_to_celsius(_value(block.get("Imperial")))

    def _transform_current(self, data: Dict[str, Any]) -> Dict[str, Any]:
        location = data["location"]
        conditions = data["conditions"]
        past_range = (conditions.get("TemperatureSummary") or {}).get("Past24HourRange") or {}
        wind = conditions.get("Wind") or {}
        wind_speed = wind.get("Speed") or {}

        speed = self._kmh_to_ms(_value(wind_speed.get("Metric")))
        if speed is None:
            speed = self._mph_to_ms(_value(wind_speed.get("Imperial")))

        text = conditions.get("WeatherText") or ""
        return {
            "provider": PROVIDER,
            **self._location_fields(location),
            "temperature": self._temperature(conditions.get("Temperature")),
            "feels_like": self._temperature(conditions.get("RealFeelTemperature")),
            "temp_min": self._temperature(past_range.get("Minimum")) or 0,
            "temp_max": self._temperature(past_range.get("Maximum")) or 0,
            "humidity": conditions.get("RelativeHumidity") or 0,
            "pressure": self._inches_to_hpa(_value((conditions.get("Pressure") or {}).get("Imperial"))) or 0,
            "wind_speed": speed or 0,
            "wind_direction": (wind.get("Direction") or {}).get("Degrees") or 0,
            "condition_main": text,
            "condition_description": text,
            "condition_icon": _icon(conditions.get("WeatherIcon")),
            "timestamp": self._epoch_to_utc(conditions.get("EpochTime")),
        }

    def _transform_forecast(self, data: Dict[str, Any]) -> Dict[str, Any]:
        entries: List[Dict[str, Any]] = []
        for day in data["forecast"].get("DailyForecasts") or []:
            temp = day.get("Temperature") or {}
            daytime = day.get("Day") or {}
            wind = daytime.get("Wind") or {}
            entries.append(
                {
                    "temperature": None,
                    "feels_like": None,
                    "temp_min": self._fahrenheit_to_celsius(_value(temp.get("Minimum"))),
                    "temp_max": self._fahrenheit_to_celsius(_value(temp.get("Maximum"))),
                    "humidity": None,
                    "pressure": None,
                    "wind_speed": self._mph_to_ms(_value(wind.get("Speed"))),
                    "wind_direction": (wind.get("Direction") or {}).get("Degrees") or 0,
                    "condition_main": daytime.get("IconPhrase") or "",
                    "condition_description": daytime.get("LongPhrase") or "",
                    "condition_icon": _icon(daytime.get("Icon")),
                    "timestamp": self._epoch_to_utc(day.get("EpochDate")),
                }
            )
        return {
            "provider": PROVIDER,
            **self._location_fields(data["location"]),
            "forecast": entries,
        }


def _value(block: Any) -> Optional[float]:
    if not isinstance(block, dict):
        return None
    v = block.get("Value")
    return v if _is_number(v) else None


def _icon(code: Any) -> str:
    return str(code or "01").zfill(2)


class AccuWeatherService(WeatherService):
    def __init__(self, api_key: str, **client_kwargs: Any) -> None:
        super().__init__(AccuWeatherClient(api_key, **client_kwargs), AccuWeatherTransformer())

    def get_current_weather(self, city: str) -> Dict[str, Any]:
        return self._standardize(self.api_client.get_current_weather(city))

    def get_forecast(self, city: str) -> Dict[str, Any]:
        return self._standardize(self.api_client.get_forecast(city))
