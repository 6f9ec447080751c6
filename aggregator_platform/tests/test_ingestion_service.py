import asyncio
import datetime as dt
import time

from aggregator_engine.errors import UpstreamProviderError
from aggregator_engine.storage import create_news_repository, create_weather_repository
from aggregator_platform import worker
from aggregator_platform.config import AppSettings
from aggregator_platform.services.ingestion_service import IngestionResult, IngestionService

TS = dt.datetime(2024, 1, 1, 6, tzinfo=dt.timezone.utc)


class FakeWeatherService:
    def __init__(self, unknown=(), delay: float = 0.0):
        self.unknown = set(unknown)
        self.delay = delay
        self.temperature = 25.0

    def get_current_weather(self, city: str) -> dict:
        if self.delay:
            time.sleep(self.delay)
        if city in self.unknown:
            raise UpstreamProviderError("openweathermap", f'City "{city}" not found', status_code=404)
        return {
            "provider": "openweathermap",
            "city": city,
            "country": "VN",
            "latitude": 21.0,
            "longitude": 105.8,
            "temperature": self.temperature,
            "feels_like": 26.0,
            "temp_min": 24.0,
            "temp_max": 27.0,
            "humidity": 80,
            "pressure": 1008,
            "wind_speed": 1.5,
            "wind_direction": 45,
            "condition_main": "Rain",
            "condition_description": "light rain",
            "condition_icon": "10d",
            "timestamp": TS,
        }


class FakeNewsService:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def get_top_headlines(self, **options) -> dict:
        self.calls.append(options)
        if self.fail:
            raise UpstreamProviderError("newsapi", "rateLimited", status_code=429)
        articles = [
            {
                "title": f"Headline {i}",
                "description": "",
                "content": f"Body {i}",
                "url": f"https://example.com/{i}",
                "image_url": None,
                "published_at": "2024-01-01T00:00:00Z",
                "source_name": "Example",
                "author": "",
                "provider": "newsapi",
            }
            for i in range(3)
        ]
        return {"status": "ok", "total_results": 3, "articles": articles}


def make_service(tmp_path, weather_service=None, news_service=None, **overrides) -> IngestionService:
    settings = AppSettings(
        database_url=f"sqlite:///{tmp_path / 'ingest.db'}",
        cities=overrides.pop("cities", "Hanoi, Atlantis"),
        **overrides,
    )
    config = {"database_url": settings.database_url}
    return IngestionService(
        settings,
        weather_service or FakeWeatherService(unknown={"Atlantis"}),
        news_service or FakeNewsService(),
        create_weather_repository("orm", config),
        create_news_repository("orm", config),
    )


def by_kind(results, kind):
    return [r for r in results if r.kind == kind]


def test_fetch_and_persist_collects_every_outcome(tmp_path):
    service = make_service(tmp_path, news_country="vn", news_category="technology")
    results = asyncio.run(service.fetch_and_persist())

    weather = {r.key: r for r in by_kind(results, "weather")}
    assert weather["Hanoi"].success and weather["Hanoi"].record_id is not None
    assert not weather["Atlantis"].success
    assert "not found" in weather["Atlantis"].error

    news = by_kind(results, "news")
    assert len(news) == 3
    assert all(r.success and not r.skipped for r in news)
    assert service.news_service.calls == [{"country": "vn", "category": "technology", "page_size": 20}]
    assert service.news_repository.count() == 3


def test_second_run_upserts_weather_and_skips_duplicate_news(tmp_path):
    service = make_service(tmp_path, cities="Hanoi")
    first = asyncio.run(service.fetch_and_persist())

    service.weather_service.temperature = 28.0
    second = asyncio.run(service.fetch_and_persist())

    assert by_kind(second, "weather")[0].record_id == by_kind(first, "weather")[0].record_id
    assert service.weather_repository.count() == 1
    assert service.weather_repository.find_all()[0]["temperature"] == 28.0

    news = by_kind(second, "news")
    assert all(r.success and r.skipped for r in news)
    assert service.news_repository.count() == 3


def test_headline_failure_yields_one_failed_result(tmp_path):
    service = make_service(tmp_path, cities="Hanoi", news_service=FakeNewsService(fail=True))
    results = asyncio.run(service.fetch_and_persist())

    news = by_kind(results, "news")
    assert len(news) == 1
    assert news[0].key == "top-headlines"
    assert not news[0].success
    assert by_kind(results, "weather")[0].success


def test_slow_provider_call_times_out(tmp_path):
    service = make_service(
        tmp_path,
        cities="Hanoi",
        weather_service=FakeWeatherService(delay=0.5),
        provider_timeout_s=0.05,
    )
    results = asyncio.run(service.fetch_and_persist())

    weather = by_kind(results, "weather")[0]
    assert not weather.success
    assert "timed out" in weather.error


def test_worker_runs_once(monkeypatch):
    class FakeIngestion:
        async def fetch_and_persist(self):
            return [IngestionResult(kind="weather", key="Hanoi", success=True, record_id=1)]

    monkeypatch.setattr(worker.IngestionService, "from_settings", lambda settings: FakeIngestion())
    assert worker.main([]) == 0


def test_worker_reports_failures(monkeypatch):
    class FakeIngestion:
        async def fetch_and_persist(self):
            return [IngestionResult(kind="news", key="top-headlines", success=False, error="boom")]

    monkeypatch.setattr(worker.IngestionService, "from_settings", lambda settings: FakeIngestion())
    assert worker.main([]) == 1
