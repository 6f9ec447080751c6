from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping, Optional, Union

from .driver import DriverBackend
from .entities import ENTITIES, EntitySpec
from .interface import REQUIRED_METHODS
from .models import build_engine, create_tables
from .orm import OrmBackend
from .repository import NewsRepository, Repository, WeatherRepository

log = logging.getLogger(__name__)

_REPOSITORY_CLASSES = {"weather": WeatherRepository, "news": NewsRepository}


class RepositoryType(str, Enum):
    ORM = "orm"
    DRIVER = "driver"


def _entity(entity: Union[str, EntitySpec]) -> EntitySpec:
    if isinstance(entity, EntitySpec):
        return entity
    try:
        return ENTITIES[entity]
    except KeyError:
        raise ValueError(f"Unknown entity: {entity}") from None


def create_repository(
    entity: Union[str, EntitySpec],
    type: Union[str, RepositoryType] = RepositoryType.ORM,
    config: Optional[Mapping[str, Any]] = None,
) -> Repository:
    """Build a repository for ``entity`` on the requested backend.

    Parameters
    ----------
    entity : str or EntitySpec
        ``"weather"``, ``"news"`` or a custom entity description.
    type : str or RepositoryType
        ``"orm"`` (SQLAlchemy session on a pooled engine) or ``"driver"``
        (hand-written SQL on short-lived connections).
    config : mapping
        ``engine`` or ``database_url`` for ORM, ``database_url`` for driver.
        ``create_tables`` (default True) creates missing tables first.

    Raises
    ------
    ValueError
        Unknown entity or repository type, or missing connection settings.
    TypeError
        When the built repository lacks one of ``REQUIRED_METHODS``.
    """
    spec = _entity(entity)
    config = dict(config or {})
    try:
        repo_type = RepositoryType(getattr(type, "value", type))
    except ValueError:
        raise ValueError(f"Unknown repository type: {type}") from None

    if repo_type is RepositoryType.ORM:
        engine = config.get("engine")
        if engine is None:
            if not config.get("database_url"):
                raise ValueError("ORM repository requires 'engine' or 'database_url'")
            engine = build_engine(config["database_url"])
        backend = OrmBackend(spec, engine)
    else:
        if not config.get("database_url"):
            raise ValueError("Driver repository requires 'database_url'")
        backend = DriverBackend(spec, config["database_url"])

    if config.get("create_tables", True):
        create_tables(backend.engine)

    cls = _REPOSITORY_CLASSES.get(spec.name)
    repository = cls(backend) if cls is not None else Repository(spec, backend)

    missing = [name for name in REQUIRED_METHODS if not callable(getattr(repository, name, None))]
    if missing:
        raise TypeError(f"Repository is missing required methods: {', '.join(missing)}")

    log.info("repository_created", extra={"entity": spec.name, "type": repo_type.value})
    return repository


def create_weather_repository(
    type: Union[str, RepositoryType] = RepositoryType.ORM,
    config: Optional[Mapping[str, Any]] = None,
) -> WeatherRepository:
    return create_repository("weather", type, config)


def create_news_repository(
    type: Union[str, RepositoryType] = RepositoryType.ORM,
    config: Optional[Mapping[str, Any]] = None,
) -> NewsRepository:
    return create_repository("news", type, config)
