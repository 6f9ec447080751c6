from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    app_name: str = "WeatherNewsAggregator"
    app_env: str = "development"
    app_version: str = "0.1.0"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    database_url: str = "sqlite:///aggregator.db"
    repository_type: str = "orm"

    openweathermap_api_key: Optional[str] = None
    accuweather_api_key: Optional[str] = None
    newsapi_api_key: Optional[str] = None
    weather_provider: str = "openweathermap"

    # Comma-separated list of cities to ingest
    cities: str = "Ho Chi Minh"
    news_country: Optional[str] = "us"
    news_category: Optional[str] = None
    news_page_size: int = 20

    default_page_limit: int = 10
    max_page_limit: int = 100
    provider_timeout_s: float = 30.0
    ingest_interval_s: Optional[float] = None

    # .env support and prefix for clarity
    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    @property
    def city_list(self) -> List[str]:
        return [c.strip() for c in self.cities.split(",") if c.strip()]

    @property
    def weather_api_key(self) -> Optional[str]:
        if self.weather_provider.lower() == "accuweather":
            return self.accuweather_api_key
        return self.openweathermap_api_key
