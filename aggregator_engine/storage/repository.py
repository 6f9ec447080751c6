from __future__ import annotations

import datetime as dt
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import pandas as pd
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..dates import ensure_utc, utc_now
from ..errors import DuplicateError, NotFoundError, RepositoryError, ValidationError
from ..query.criteria import AnyOf, Condition, Criteria
from .entities import NEWS, WEATHER, EntitySpec
from .interface import StorageBackend
from .validation import sanitize_fields

log = logging.getLogger(__name__)

Record = Dict[str, Any]

STATS_RANGES = {
    "24h": dt.timedelta(hours=24),
    "7d": dt.timedelta(days=7),
    "30d": dt.timedelta(days=30),
}


class Repository:
    """Generic CRUD repository for one entity over a pluggable storage backend.

    Records are plain dicts keyed by column name. Every write goes through the
    entity's validator; storage failures surface as ``DuplicateError`` (unique
    field already taken) or ``RepositoryError`` chained to the driver error.
    """

    def __init__(self, entity: EntitySpec, backend: StorageBackend) -> None:
        self.entity = entity
        self.backend = backend

    # -- helpers -----------------------------------------------------------

    def _finish(self, row: Optional[Record]) -> Optional[Record]:
        if row is None:
            return None
        for name, value in row.items():
            if isinstance(value, dt.datetime):
                row[name] = ensure_utc(value)
        return row

    def _order(self, order: Optional[Sequence[Tuple[str, str]]]) -> List[Tuple[str, str]]:
        known = set(self.entity.columns)
        valid = []
        for name, direction in order or ():
            if name in known:
                valid.append((name, "DESC" if str(direction).upper() == "DESC" else "ASC"))
            else:
                log.debug("sort_field_dropped", extra={"entity": self.entity.name, "field": name})
        return valid or list(self.entity.default_order)

    def _check_criteria(self, criteria: Optional[Criteria]) -> None:
        unknown = [f for f in (criteria.fields() if criteria else []) if f not in self.entity.columns]
        if unknown:
            raise ValidationError(
                f"Unknown {self.entity.name} fields: {', '.join(unknown)}", fields=unknown
            )

    def _find_duplicate(self, values: Mapping[str, Any], record_id: Any = None) -> Optional[Tuple[str, Any]]:
        """Return the unique ``(field, value)`` another row already holds, if any."""
        for name in self.entity.unique_fields:
            value = values.get(name)
            if value is None:
                continue
            # The record being updated always matches its own unchanged value
            rows = self.backend.select(Criteria([Condition(name, "exact", value)]), [], 2, None)
            if any(row["id"] != record_id for row in rows):
                return name, value
        return None

    @contextmanager
    def _storage_errors(
        self,
        operation: str,
        values: Optional[Mapping[str, Any]] = None,
        record_id: Any = None,
    ) -> Iterator[None]:
        try:
            yield
        except IntegrityError as e:
            try:
                duplicate = self._find_duplicate(values or {}, record_id)
            except SQLAlchemyError as lookup_error:
                log.warning(
                    "duplicate_lookup_failed",
                    extra={"entity": self.entity.name, "operation": operation, "error": str(lookup_error)},
                )
                duplicate = None
            if duplicate is not None:
                raise DuplicateError(self.entity.name, *duplicate) from e
            raise RepositoryError(self.entity.name, operation, str(e.orig)) from e
        except SQLAlchemyError as e:
            log.error(
                "repository_operation_failed",
                extra={"entity": self.entity.name, "operation": operation, "error": str(e)},
            )
            raise RepositoryError(self.entity.name, operation, str(e)) from e

    # -- operations --------------------------------------------------------

    def validate(self, data: Mapping[str, Any]) -> Record:
        return self.entity.validator(data)

    def create(self, data: Mapping[str, Any]) -> Record:
        values = self.validate(data)
        now = utc_now()
        for name in self.entity.timestamps:
            values[name] = now
        with self._storage_errors("create", values):
            return self._finish(self.backend.insert(values))

    def find_by_id(self, record_id: Any) -> Optional[Record]:
        with self._storage_errors("find_by_id"):
            return self._finish(self.backend.get(record_id))

    def find_all(
        self,
        criteria: Optional[Criteria] = None,
        order: Optional[Sequence[Tuple[str, str]]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Record]:
        self._check_criteria(criteria)
        with self._storage_errors("find_all"):
            rows = self.backend.select(criteria, self._order(order), limit, offset)
        return [self._finish(row) for row in rows]

    def count(self, criteria: Optional[Criteria] = None) -> int:
        self._check_criteria(criteria)
        with self._storage_errors("count"):
            return self.backend.count(criteria)

    def update(self, record_id: Any, data: Mapping[str, Any]) -> Record:
        with self._storage_errors("update"):
            current = self.backend.get(record_id)
        if current is None:
            raise NotFoundError(self.entity.name, record_id)

        # Stored values are already sanitized; only the incoming patch is
        patch = sanitize_fields(data, self.entity.text_fields)
        merged = {**current, **patch}
        values = self.entity.validator(merged, sanitize=False)
        if "updated_at" in self.entity.timestamps:
            values["updated_at"] = utc_now()

        with self._storage_errors("update", values, record_id):
            row = self.backend.update(record_id, values)
        if row is None:
            raise NotFoundError(self.entity.name, record_id)
        return self._finish(row)

    def delete(self, record_id: Any) -> bool:
        with self._storage_errors("delete"):
            return self.backend.delete(record_id)

    def save(self, data: Mapping[str, Any], record_id: Any = None) -> Record:
        if record_id is not None:
            return self.update(record_id, data)
        return self.create(data)

    def check_connection(self) -> bool:
        with self._storage_errors("check_connection"):
            self.backend.ping()
        return True

    def _match_keys(self, keys: Sequence[str], values: Mapping[str, Any]) -> Optional[Record]:
        criteria = Criteria([Condition(k, "exact", values.get(k)) for k in keys])
        rows = self.find_all(criteria, limit=1)
        return rows[0] if rows else None

    def find_or_create(self, keys: Sequence[str], data: Mapping[str, Any]) -> Tuple[Record, bool]:
        """Return ``(record, created)``; matching is on the validated ``keys`` values."""
        values = self.validate(data)
        existing = self._match_keys(keys, values)
        if existing is not None:
            return existing, False
        return self.create(data), True

    def upsert(self, keys: Sequence[str], data: Mapping[str, Any]) -> Tuple[Record, bool]:
        """Update the record matching ``keys`` or create it. Returns ``(record, created)``."""
        values = self.validate(data)
        existing = self._match_keys(keys, values)
        if existing is None:
            return self.create(data), True
        return self.update(existing["id"], data), False


class WeatherRepository(Repository):
    page_size = 200

    def __init__(self, backend: StorageBackend) -> None:
        super().__init__(WEATHER, backend)

    def find_latest_by_city(self, limit: int = 10) -> List[Record]:
        """Most recent record of each city, newest first.

        Rows are read newest first one page at a time, stopping once ``limit``
        cities are found.
        """
        latest: Dict[str, Record] = {}
        offset = 0
        while len(latest) < limit:
            rows = self.find_all(order=[("timestamp", "DESC")], limit=self.page_size, offset=offset)
            for row in rows:
                key = row["city"].lower()
                if key not in latest:
                    latest[key] = row
                    if len(latest) >= limit:
                        break
            if len(rows) < self.page_size:
                break
            offset += self.page_size
        return list(latest.values())

    def get_stats_by_city(self, city: str, time_range: str = "24h") -> Dict[str, Any]:
        """Aggregate temperature, humidity and wind for ``city`` over ``time_range``.

        Parameters
        ----------
        city : str
            City name, matched case-insensitively.
        time_range : str
            One of ``24h``, ``7d``, ``30d``.

        Returns
        -------
        dict
            ``count`` plus ``temperature`` (avg/min/max), ``humidity`` (avg) and
            ``wind_speed`` (avg). Aggregates are ``None`` when no record matches.
        """
        if time_range not in STATS_RANGES:
            raise ValidationError(
                f"time_range must be one of {', '.join(STATS_RANGES)}", fields=["time_range"]
            )
        since = utc_now() - STATS_RANGES[time_range]
        rows = self.find_all(
            Criteria(
                [Condition("city", "iexact", city), Condition("timestamp", "gte", since)]
            )
        )
        stats: Dict[str, Any] = {
            "city": city,
            "time_range": time_range,
            "count": len(rows),
            "temperature": {"avg": None, "min": None, "max": None},
            "humidity": {"avg": None},
            "wind_speed": {"avg": None},
        }
        if not rows:
            return stats

        df = pd.DataFrame(rows, columns=["temperature", "humidity", "wind_speed"]).astype(float)
        stats["temperature"] = {
            "avg": round(float(df["temperature"].mean()), 2),
            "min": float(df["temperature"].min()),
            "max": float(df["temperature"].max()),
        }
        stats["humidity"] = {"avg": round(float(df["humidity"].mean()), 2)}
        stats["wind_speed"] = {"avg": round(float(df["wind_speed"].mean()), 2)}
        return stats


class NewsRepository(Repository):
    def __init__(self, backend: StorageBackend) -> None:
        super().__init__(NEWS, backend)

    def find_by_provider(self, provider: str, limit: int = 10, offset: int = 0) -> List[Record]:
        return self.find_all(Criteria.from_mapping({"provider": provider}), limit=limit, offset=offset)

    def search(self, query: str, limit: int = 10, offset: int = 0) -> List[Record]:
        """Case-insensitive substring match over title, description and content."""
        criteria = Criteria(
            [AnyOf(tuple(Condition(f, "icontains", query) for f in ("title", "description", "content")))]
        )
        return self.find_all(criteria, limit=limit, offset=offset)
