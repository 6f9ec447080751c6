from __future__ import annotations

import asyncio
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import structlog

from aggregator_engine.dates import utc_now
from aggregator_engine.query import (
    NEWS_FILTERS,
    WEATHER_FILTERS,
    Criteria,
    PaginationParams,
    build_lookup_criteria,
    get_paginated_data,
    get_pagination_params,
    parse_sort,
    process_filters,
)
from aggregator_engine.storage import (
    NEWS,
    WEATHER,
    NewsRepository,
    WeatherRepository,
    build_engine,
    create_news_repository,
    create_weather_repository,
)

from ..config import AppSettings

logger = structlog.get_logger(__name__)

PAGINATION_KEYS = frozenset({"page", "limit", "offset", "sort"})
GENERIC_INIT_ERROR = "Service temporarily unavailable"


def _empty_branch() -> Dict[str, Any]:
    return {"items": [], "pagination": {}}


def build_repositories(settings: AppSettings) -> Tuple[WeatherRepository, NewsRepository]:
    """Create the weather and news repositories described by ``settings``."""
    config: Dict[str, Any] = {"database_url": settings.database_url}
    if settings.repository_type == "orm":
        config["engine"] = build_engine(settings.database_url)
    return (
        create_weather_repository(settings.repository_type, config),
        create_news_repository(settings.repository_type, config),
    )


class AggregationService:
    def __init__(
        self,
        settings: AppSettings,
        weather_repository: Optional[WeatherRepository] = None,
        news_repository: Optional[NewsRepository] = None,
    ):
        self.settings = settings
        self._repositories: Optional[Tuple[WeatherRepository, NewsRepository]] = None
        if weather_repository is not None and news_repository is not None:
            self._repositories = (weather_repository, news_repository)
        self._init_task: Optional[asyncio.Task] = None

    async def _ensure_repositories(self) -> Tuple[WeatherRepository, NewsRepository]:
        if self._repositories is not None:
            return self._repositories
        # Concurrent first callers share one initialization
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(asyncio.to_thread(build_repositories, self.settings))
        try:
            self._repositories = await self._init_task
        except Exception:
            self._init_task = None
            raise
        return self._repositories

    def _criteria(self, filters: Mapping[str, Any], schema, entity) -> Criteria:
        criteria = process_filters(filters, schema)
        criteria.extend(build_lookup_criteria(filters, entity.field_types, exclude=schema.keys()))
        return criteria

    async def _branch(
        self,
        name: str,
        repository,
        criteria: Criteria,
        order: Sequence[Tuple[str, str]],
        params: PaginationParams,
    ) -> Dict[str, Any]:
        try:
            return await get_paginated_data(repository, criteria, order, params)
        except Exception as e:
            logger.error("aggregation_branch_failed", branch=name, error=str(e))
            return _empty_branch()

    async def get_aggregated_data(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        """Query weather and news concurrently with shared pagination.

        Invalid query parameters raise ``QueryValidationError``. A failing
        branch is logged and comes back empty without affecting the other.
        """
        try:
            weather_repo, news_repo = await self._ensure_repositories()
        except Exception as e:
            logger.error("repository_init_failed", error=str(e))
            return {
                "news": _empty_branch(),
                "weather": _empty_branch(),
                "timestamp": utc_now(),
                "error": GENERIC_INIT_ERROR if self.settings.is_production else str(e),
            }

        pagination = get_pagination_params(
            params,
            default_limit=self.settings.default_page_limit,
            max_limit=self.settings.max_page_limit,
        )
        order = parse_sort(params.get("sort"))
        filters = {k: v for k, v in params.items() if k not in PAGINATION_KEYS}
        weather_criteria = self._criteria(filters, WEATHER_FILTERS, WEATHER)
        news_criteria = self._criteria(filters, NEWS_FILTERS, NEWS)

        weather, news = await asyncio.gather(
            self._branch("weather", weather_repo, weather_criteria, order, pagination),
            self._branch("news", news_repo, news_criteria, order, pagination),
        )
        logger.info(
            "aggregated_data_served",
            weather_items=len(weather["items"]),
            news_items=len(news["items"]),
        )
        return {"news": news, "weather": weather, "timestamp": utc_now()}

    async def check_database(self) -> bool:
        try:
            weather_repo, news_repo = await self._ensure_repositories()
            await asyncio.gather(
                asyncio.to_thread(weather_repo.check_connection),
                asyncio.to_thread(news_repo.check_connection),
            )
        except Exception as e:
            logger.warning("database_check_failed", error=str(e))
            return False
        return True
