import datetime as dt
import unittest

from aggregator_engine.errors import ValidationError
from aggregator_engine.providers.locations import normalize_city, normalize_country
from aggregator_engine.storage.validation import (
    WEATHER_REQUIRED,
    sanitize_string,
    validate_news,
    validate_weather,
)


def weather_record(**overrides) -> dict:
    record = {
        "provider": "openweathermap",
        "city": "Ho Chi Minh",
        "country": "VN",
        "latitude": 10.82,
        "longitude": 106.63,
        "temperature": 25.3,
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
        "timestamp": dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc),
    }
    record.update(overrides)
    return record


class TestWeatherValidation(unittest.TestCase):
    def test_valid_record_passes(self) -> None:
        out = validate_weather(weather_record())
        self.assertEqual(out["temperature"], 25.3)
        self.assertEqual(out["timestamp"], dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc))

    def test_each_required_field_is_reported(self) -> None:
        for name in WEATHER_REQUIRED:
            record = weather_record()
            del record[name]
            with self.assertRaises(ValidationError) as ctx:
                validate_weather(record)
            self.assertEqual(ctx.exception.fields, [name])
            self.assertIn(name, str(ctx.exception))

    def test_out_of_range_values_fail(self) -> None:
        cases = {
            "temperature": 70.1,
            "humidity": 101,
            "pressure": 799,
            "wind_direction": 361,
            "wind_speed": -1,
            "latitude": 91,
        }
        for name, value in cases.items():
            with self.assertRaises(ValidationError) as ctx:
                validate_weather(weather_record(**{name: value}))
            self.assertEqual(ctx.exception.fields, [name])

    def test_boundaries_pass(self) -> None:
        validate_weather(
            weather_record(temperature=-100, humidity=100, pressure=1200, wind_speed=0, wind_direction=360)
        )
        validate_weather(weather_record(temperature=70, humidity=0, pressure=800, wind_speed=150, wind_direction=0))

    def test_non_numeric_and_unknown_provider(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_weather(weather_record(temperature="hot", provider="weatherbit"))
        self.assertEqual(sorted(ctx.exception.fields), ["provider", "temperature"])

    def test_far_future_timestamp_fails(self) -> None:
        future = dt.datetime.now(dt.timezone.utc) + dt.timedelta(hours=25)
        with self.assertRaises(ValidationError):
            validate_weather(weather_record(timestamp=future))
        validate_weather(weather_record(timestamp=future - dt.timedelta(hours=2)))

    def test_epoch_and_string_timestamps(self) -> None:
        expected = dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)
        self.assertEqual(validate_weather(weather_record(timestamp=1704067200))["timestamp"], expected)
        self.assertEqual(validate_weather(weather_record(timestamp="2024-01-01T00:00:00Z"))["timestamp"], expected)


class TestNewsValidation(unittest.TestCase):
    def test_required_fields(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_news({"provider": "newsapi", "title": ""})
        self.assertEqual(ctx.exception.fields, ["title", "content", "url"])

    def test_url_is_required(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_news({"title": "t", "content": "c", "provider": "newsapi", "url": None})
        self.assertEqual(ctx.exception.fields, ["url"])

    def test_urls_must_be_http(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            validate_news(
                {"title": "t", "content": "c", "provider": "newsapi", "url": "ftp://x", "image_url": "data:abc"}
            )
        self.assertEqual(ctx.exception.fields, ["url", "image_url"])

    def test_published_at_defaults_and_parses(self) -> None:
        out = validate_news({"title": "t", "content": "c", "url": "https://example.com/t", "provider": "newsapi"})
        self.assertIsNotNone(out["published_at"].tzinfo)
        self.assertEqual(out["description"], "")
        with self.assertRaises(ValidationError):
            validate_news(
                {
                    "title": "t",
                    "content": "c",
                    "url": "https://example.com/t",
                    "provider": "newsapi",
                    "published_at": "yesterday-ish",
                }
            )


class TestSanitize(unittest.TestCase):
    def test_strips_scripts_and_handlers(self) -> None:
        self.assertEqual(sanitize_string("a<script>alert(1)</script>b"), "ab")
        self.assertEqual(sanitize_string("javascript:go()"), "go()")
        self.assertEqual(sanitize_string('<img onerror=x>'), "<img x>")

    def test_escapes_quotes_and_semicolons(self) -> None:
        self.assertEqual(sanitize_string("it's; \"fine\""), "it\\'s\\; \\\"fine\\\"")
        self.assertEqual(sanitize_string(42), 42)

    def test_validator_sanitizes_text_fields(self) -> None:
        out = validate_news(
            {"title": "<script>x</script>Storm", "content": "c", "url": "https://example.com/s", "provider": "newsapi"}
        )
        self.assertEqual(out["title"], "Storm")


class TestLocations(unittest.TestCase):
    def test_city_aliases(self) -> None:
        for raw in ("hcm", "Saigon", "ho  chi minh city", "HCMC"):
            self.assertEqual(normalize_city(raw), "Ho Chi Minh")
        self.assertEqual(normalize_city("ha noi"), "Hanoi")
        self.assertEqual(normalize_city("new york"), "New York")

    def test_country_codes(self) -> None:
        self.assertEqual(normalize_country("Viet Nam"), "VN")
        self.assertEqual(normalize_country("u.k."), "GB")
        self.assertEqual(normalize_country("uk"), "GB")
        self.assertEqual(normalize_country("vn"), "VN")
        self.assertEqual(normalize_country("Atlantis"), "Atlantis")


if __name__ == "__main__":
    unittest.main()
