import datetime as dt
import os
import tempfile
import unittest
from unittest.mock import patch

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, OperationalError

from aggregator_engine.errors import DuplicateError, NotFoundError, RepositoryError, ValidationError
from aggregator_engine.query import AnyOf, Condition, Criteria
from aggregator_engine.storage import (
    REQUIRED_METHODS,
    RepositoryType,
    create_news_repository,
    create_repository,
    create_weather_repository,
)


def weather_data(**overrides) -> dict:
    record = {
        "provider": "openweathermap",
        "city": "Ho Chi Minh",
        "country": "VN",
        "latitude": 10.82,
        "longitude": 106.63,
        "temperature": 25.0,
        "feels_like": 26.0,
        "temp_min": 24.0,
        "temp_max": 27.0,
        "humidity": 60,
        "pressure": 1012,
        "wind_speed": 3.1,
        "wind_direction": 180,
        "condition_main": "Clear",
        "condition_description": "clear sky",
        "condition_icon": "01d",
        "timestamp": dt.datetime.now(dt.timezone.utc).replace(microsecond=0) - dt.timedelta(hours=1),
    }
    record.update(overrides)
    return record


def news_data(**overrides) -> dict:
    record = {
        "title": "Storm approaches the coast",
        "description": "Heavy rain expected",
        "content": "Forecasters warn of flooding.",
        "url": "https://example.com/storm",
        "image_url": "https://example.com/storm.jpg",
        "published_at": "2024-01-01T08:00:00Z",
        "source_name": "Example News",
        "author": "Jane Reporter",
        "provider": "newsapi",
    }
    record.update(overrides)
    return record


class RepositoryContract:
    """Behaviour shared by every backend; mixed into one TestCase per backend."""

    repository_type = RepositoryType.ORM

    def setUp(self) -> None:
        # Use a temporary sqlite file to avoid in-memory connection scoping issues
        self._tmpdir = tempfile.TemporaryDirectory()
        self.database_url = f"sqlite:///{os.path.join(self._tmpdir.name, 'test.db')}"
        self._engine = create_engine(self.database_url, future=True)
        config = {"database_url": self.database_url}
        if self.repository_type is RepositoryType.ORM:
            config["engine"] = self._engine
        self.weather = create_weather_repository(self.repository_type, config)
        self.news = create_news_repository(self.repository_type, config)

    def tearDown(self) -> None:
        self._engine.dispose()
        for repo in (self.weather, self.news):
            repo.backend.engine.dispose()
        self._tmpdir.cleanup()

    def test_create_and_find_by_id(self) -> None:
        data = weather_data()
        created = self.weather.create(data)
        self.assertIsInstance(created["id"], int)
        self.assertEqual(created["created_at"].tzinfo, dt.timezone.utc)

        found = self.weather.find_by_id(created["id"])
        self.assertEqual(found["city"], "Ho Chi Minh")
        self.assertAlmostEqual(found["temperature"], 25.0)
        self.assertEqual(found["timestamp"], data["timestamp"])
        self.assertIsNone(self.weather.find_by_id(9999))

    def test_invalid_record_is_not_stored(self) -> None:
        with self.assertRaises(ValidationError):
            self.weather.create(weather_data(humidity=150))
        self.assertEqual(self.weather.count(), 0)

    def test_duplicate_url_raises_and_keeps_one_row(self) -> None:
        self.news.create(news_data())
        with self.assertRaises(DuplicateError) as ctx:
            self.news.create(news_data(title="Same link, new title"))
        self.assertEqual(ctx.exception.field, "url")
        self.assertEqual(ctx.exception.value, "https://example.com/storm")
        self.assertEqual(self.news.count(Criteria.from_mapping({"url": "https://example.com/storm"})), 1)

    def test_news_without_url_is_rejected(self) -> None:
        for url in (None, ""):
            with self.assertRaises(ValidationError) as ctx:
                self.news.create(news_data(url=url))
            self.assertEqual(ctx.exception.fields, ["url"])
        self.assertEqual(self.news.count(), 0)

    def test_update_to_taken_url_raises_duplicate(self) -> None:
        self.news.create(news_data())
        other = self.news.create(news_data(url="https://example.com/other"))
        with self.assertRaises(DuplicateError) as ctx:
            self.news.update(other["id"], {"url": "https://example.com/storm"})
        self.assertEqual(ctx.exception.field, "url")
        self.assertEqual(self.news.find_by_id(other["id"])["url"], "https://example.com/other")

    def test_integrity_error_on_own_url_is_not_a_duplicate(self) -> None:
        created = self.news.create(news_data())
        with self.assertRaises(RepositoryError):
            with self.news._storage_errors("update", created, created["id"]):
                raise IntegrityError("UPDATE news", {}, Exception("CHECK constraint failed"))

    def test_failed_duplicate_lookup_is_wrapped(self) -> None:
        lookup_failure = OperationalError("SELECT", {}, Exception("database is locked"))
        with patch.object(self.news.backend, "select", side_effect=lookup_failure):
            with self.assertRaises(RepositoryError) as ctx:
                with self.news._storage_errors("create", news_data()):
                    raise IntegrityError("INSERT news", {}, Exception("UNIQUE constraint failed"))
        self.assertEqual(ctx.exception.operation, "create")

    def test_update_merges_and_missing_id(self) -> None:
        created = self.weather.create(weather_data())
        updated = self.weather.update(created["id"], {"temperature": 30.5})
        self.assertAlmostEqual(updated["temperature"], 30.5)
        self.assertEqual(updated["city"], "Ho Chi Minh")
        self.assertGreaterEqual(updated["updated_at"], created["updated_at"])

        with self.assertRaises(NotFoundError):
            self.weather.update(9999, {"temperature": 1.0})
        with self.assertRaises(ValidationError):
            self.weather.update(created["id"], {"pressure": 5000})

    def test_update_does_not_escape_stored_text_twice(self) -> None:
        created = self.news.create(news_data(title="It's raining"))
        updated = self.news.update(created["id"], {"author": "Someone"})
        self.assertEqual(updated["title"], created["title"])

    def test_delete_and_save(self) -> None:
        created = self.news.save(news_data())
        saved = self.news.save({"title": "Updated"}, created["id"])
        self.assertEqual(saved["title"], "Updated")
        self.assertTrue(self.news.delete(created["id"]))
        self.assertFalse(self.news.delete(created["id"]))

    def test_find_all_criteria_order_and_paging(self) -> None:
        for i, city in enumerate(["Hanoi", "Ho Chi Minh", "Da Nang", "Hue"]):
            self.weather.create(weather_data(city=city, temperature=20.0 + i))

        warm = self.weather.find_all(Criteria([Condition("temperature", "gte", 22.0)]))
        self.assertEqual({r["city"] for r in warm}, {"Da Nang", "Hue"})

        by_name = self.weather.find_all(Criteria([Condition("city", "icontains", "HA")]), [("city", "ASC")])
        self.assertEqual([r["city"] for r in by_name], ["Hanoi"])

        ordered = self.weather.find_all(order=[("temperature", "DESC")], limit=2, offset=1)
        self.assertEqual([r["city"] for r in ordered], ["Da Nang", "Ho Chi Minh"])

        either = Criteria([AnyOf((Condition("city", "exact", "Hue"), Condition("city", "startswith", "Da")))])
        self.assertEqual(self.weather.count(either), 2)

        within = Criteria([Condition("city", "in", ["Hue", "Hanoi"]), Condition("temperature", "between", [20, 21])])
        self.assertEqual([r["city"] for r in self.weather.find_all(within)], ["Hanoi"])

    def test_like_wildcards_are_literal(self) -> None:
        self.news.create(news_data(title="100% renewable", url="https://example.com/a"))
        self.news.create(news_data(title="1000 renewable", url="https://example.com/b"))
        hits = self.news.find_all(Criteria([Condition("title", "icontains", "0%")]))
        self.assertEqual([r["url"] for r in hits], ["https://example.com/a"])

    def test_unknown_sort_field_falls_back_to_default_order(self) -> None:
        self.news.create(news_data(url="https://example.com/old", published_at="2024-01-01T00:00:00Z"))
        self.news.create(news_data(url="https://example.com/new", published_at="2024-02-01T00:00:00Z"))
        rows = self.news.find_all(order=[("temperature", "ASC")])
        self.assertEqual([r["url"] for r in rows], ["https://example.com/new", "https://example.com/old"])

    def test_upsert_and_find_or_create(self) -> None:
        keys = ("city", "provider", "timestamp")
        ts = dt.datetime(2024, 1, 1, 6, tzinfo=dt.timezone.utc)
        first, created = self.weather.upsert(keys, weather_data(timestamp=ts))
        self.assertTrue(created)
        second, created = self.weather.upsert(keys, weather_data(timestamp=ts, temperature=28.0))
        self.assertFalse(created)
        self.assertEqual(first["id"], second["id"])
        self.assertAlmostEqual(second["temperature"], 28.0)
        self.assertEqual(self.weather.count(), 1)

        record, created = self.news.find_or_create(("url",), news_data())
        again, created_again = self.news.find_or_create(("url",), news_data(title="Other"))
        self.assertTrue(created)
        self.assertFalse(created_again)
        self.assertEqual(record["id"], again["id"])

    def test_weather_extras(self) -> None:
        now = dt.datetime.now(dt.timezone.utc).replace(microsecond=0)
        self.weather.create(weather_data(city="Hanoi", temperature=10.0, timestamp=now - dt.timedelta(hours=2)))
        self.weather.create(weather_data(city="Hanoi", temperature=20.0, timestamp=now - dt.timedelta(hours=1)))
        self.weather.create(weather_data(city="Hanoi", temperature=40.0, timestamp=now - dt.timedelta(days=3)))
        self.weather.create(weather_data(city="Hue", temperature=30.0, timestamp=now - dt.timedelta(hours=3)))

        latest = self.weather.find_latest_by_city()
        self.assertEqual([(r["city"], r["temperature"]) for r in latest], [("Hanoi", 20.0), ("Hue", 30.0)])

        stats = self.weather.get_stats_by_city("hanoi", "24h")
        self.assertEqual(stats["count"], 2)
        self.assertEqual(stats["temperature"], {"avg": 15.0, "min": 10.0, "max": 20.0})
        self.assertEqual(self.weather.get_stats_by_city("Hanoi", "7d")["count"], 3)
        empty = self.weather.get_stats_by_city("Da Nang", "30d")
        self.assertEqual(empty["count"], 0)
        self.assertIsNone(empty["temperature"]["avg"])
        with self.assertRaises(ValidationError):
            self.weather.get_stats_by_city("Hanoi", "1y")

    def test_latest_by_city_reads_in_pages(self) -> None:
        now = dt.datetime.now(dt.timezone.utc).replace(microsecond=0)
        for hours, city in enumerate(["Hanoi", "Hanoi", "Hue", "Hue", "Da Nang"], start=1):
            self.weather.create(weather_data(city=city, timestamp=now - dt.timedelta(hours=hours)))
        self.weather.page_size = 2

        latest = self.weather.find_latest_by_city()
        self.assertEqual([r["city"] for r in latest], ["Hanoi", "Hue", "Da Nang"])

        with patch.object(self.weather.backend, "select", wraps=self.weather.backend.select) as select:
            self.assertEqual([r["city"] for r in self.weather.find_latest_by_city(limit=1)], ["Hanoi"])
        self.assertEqual(select.call_count, 1)

    def test_news_extras(self) -> None:
        self.news.create(news_data(url="https://example.com/1", title="Flood warning"))
        self.news.create(news_data(url="https://example.com/2", title="Election", description="", content="Votes counted"))
        self.assertEqual(len(self.news.find_by_provider("newsapi")), 2)
        self.assertEqual([r["title"] for r in self.news.search("flood")], ["Flood warning"])

    def test_check_connection(self) -> None:
        self.assertTrue(self.weather.check_connection())
        self.assertTrue(self.news.check_connection())


class TestOrmRepository(RepositoryContract, unittest.TestCase):
    repository_type = RepositoryType.ORM


class TestDriverRepository(RepositoryContract, unittest.TestCase):
    repository_type = RepositoryType.DRIVER


class TestRepositoryFactory(unittest.TestCase):
    def test_unknown_type_and_missing_config(self) -> None:
        with self.assertRaises(ValueError):
            create_repository("weather", "mongo", {"database_url": "sqlite://"})
        with self.assertRaises(ValueError):
            create_repository("weather", "orm", {})
        with self.assertRaises(ValueError):
            create_repository("weather", "driver", {})
        with self.assertRaises(ValueError):
            create_repository("alerts", "orm", {"database_url": "sqlite://"})

    def test_repository_exposes_required_methods(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            url = f"sqlite:///{os.path.join(td, 'f.db')}"
            repo = create_repository("news", "driver", {"database_url": url})
            for name in REQUIRED_METHODS:
                self.assertTrue(callable(getattr(repo, name)))
            repo.backend.engine.dispose()


if __name__ == "__main__":
    unittest.main()
