from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import structlog

from aggregator_engine.errors import DuplicateError
from aggregator_engine.providers import (
    NewsService,
    WeatherService,
    create_news_service,
    create_weather_service,
)
from aggregator_engine.storage import NewsRepository, WeatherRepository

from ..config import AppSettings
from .aggregation_service import build_repositories

logger = structlog.get_logger(__name__)

WEATHER_UPSERT_KEYS = ("city", "provider", "timestamp")


@dataclass
class IngestionResult:
    kind: str
    key: str
    success: bool
    skipped: bool = False
    record_id: Optional[int] = None
    error: Optional[str] = None


class IngestionService:
    """Fetch provider data and persist it, one independent task per item."""

    def __init__(
        self,
        settings: AppSettings,
        weather_service: WeatherService,
        news_service: NewsService,
        weather_repository: WeatherRepository,
        news_repository: NewsRepository,
    ):
        self.settings = settings
        self.weather_service = weather_service
        self.news_service = news_service
        self.weather_repository = weather_repository
        self.news_repository = news_repository
        self.timeout_s = settings.provider_timeout_s

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "IngestionService":
        weather_repo, news_repo = build_repositories(settings)
        return cls(
            settings,
            create_weather_service(settings.weather_provider, settings.weather_api_key or ""),
            create_news_service(settings.newsapi_api_key or ""),
            weather_repo,
            news_repo,
        )

    async def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        # The worker thread itself cannot be cancelled; the HTTP client's own
        # connect/read timeout bounds it.
        return await asyncio.wait_for(asyncio.to_thread(fn, *args, **kwargs), timeout=self.timeout_s)

    def _failure(self, kind: str, key: str, e: BaseException) -> IngestionResult:
        if isinstance(e, asyncio.TimeoutError):
            message = f"timed out after {self.timeout_s}s"
        else:
            message = str(e)
        logger.warning("ingestion_item_failed", kind=kind, key=key, error=message)
        return IngestionResult(kind=kind, key=key, success=False, error=message)

    async def _ingest_city(self, city: str) -> IngestionResult:
        try:
            record = await self._call(self.weather_service.get_current_weather, city)
            saved, created = await self._call(self.weather_repository.upsert, WEATHER_UPSERT_KEYS, record)
        except Exception as e:
            return self._failure("weather", city, e)
        logger.info("weather_saved", city=city, record_id=saved["id"], created=created)
        return IngestionResult(kind="weather", key=city, success=True, record_id=saved["id"])

    async def _ingest_article(self, article: Dict[str, Any]) -> IngestionResult:
        key = article.get("url") or article.get("title") or "unknown"
        try:
            saved = await self._call(self.news_repository.create, article)
        except DuplicateError:
            return IngestionResult(kind="news", key=key, success=True, skipped=True)
        except Exception as e:
            return self._failure("news", key, e)
        return IngestionResult(kind="news", key=key, success=True, record_id=saved["id"])

    async def ingest_weather(self) -> List[IngestionResult]:
        return list(await asyncio.gather(*[self._ingest_city(c) for c in self.settings.city_list]))

    async def ingest_news(self) -> List[IngestionResult]:
        try:
            headlines = await self._call(
                self.news_service.get_top_headlines,
                country=self.settings.news_country,
                category=self.settings.news_category,
                page_size=self.settings.news_page_size,
            )
        except Exception as e:
            return [self._failure("news", "top-headlines", e)]
        articles = headlines.get("articles", [])
        return list(await asyncio.gather(*[self._ingest_article(a) for a in articles]))

    async def fetch_and_persist(self) -> List[IngestionResult]:
        """Run one ingestion pass; failures are reported per item, never raised."""
        weather, news = await asyncio.gather(self.ingest_weather(), self.ingest_news())
        results = [*weather, *news]
        logger.info(
            "ingestion_completed",
            saved=sum(1 for r in results if r.success and not r.skipped),
            skipped=sum(1 for r in results if r.skipped),
            failed=sum(1 for r in results if not r.success),
        )
        return results
