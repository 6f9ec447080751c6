from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Optional, Tuple

from ..errors import QueryValidationError
from .criteria import AnyOf, Condition, Criteria
from .lookups import coerce_value

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldSpec:
    """Declarative description of one simple query parameter.

    Attributes
    ----------
    type : str
        ``string``, ``number``, ``integer``, ``boolean`` or ``date``.
    required : bool
        Missing required parameters raise ``QueryValidationError``.
    default : Any
        Raw value used when the parameter is absent.
    allowed : tuple, optional
        Accepted values; anything else is dropped with a warning.
    target : str, optional
        Record field the condition applies to (defaults to the parameter name).
    operator : str
        Comparison applied against ``target``.
    any_of : tuple of str
        When set, the value is matched against each of these fields and the
        conditions are OR-ed together.
    """

    type: str = "string"
    required: bool = False
    default: Any = None
    allowed: Optional[Tuple[Any, ...]] = None
    target: Optional[str] = None
    operator: str = "exact"
    any_of: Tuple[str, ...] = ()


WEATHER_FILTERS: Mapping[str, FieldSpec] = MappingProxyType(
    {
        "city": FieldSpec(operator="icontains"),
        "country": FieldSpec(operator="iexact"),
        "provider": FieldSpec(allowed=("openweathermap", "accuweather")),
        "minTemperature": FieldSpec(type="number", target="temperature", operator="gte"),
        "maxTemperature": FieldSpec(type="number", target="temperature", operator="lte"),
        "fromDate": FieldSpec(type="date", target="timestamp", operator="gte"),
        "toDate": FieldSpec(type="date", target="timestamp", operator="lte"),
    }
)

NEWS_FILTERS: Mapping[str, FieldSpec] = MappingProxyType(
    {
        "provider": FieldSpec(default="newsapi", allowed=("newsapi",)),
        "sourceName": FieldSpec(target="source_name", operator="icontains"),
        "author": FieldSpec(operator="icontains"),
        "fromDate": FieldSpec(type="date", target="published_at", operator="gte"),
        "toDate": FieldSpec(type="date", target="published_at", operator="lte"),
        "query": FieldSpec(operator="icontains", any_of=("title", "description", "content")),
    }
)


def process_filters(params: Mapping[str, Any], schema: Mapping[str, FieldSpec]) -> Criteria:
    """Build criteria from the parameters a filter schema declares.

    Keys the schema does not declare are ignored.
    """
    criteria = Criteria()
    for name, spec in schema.items():
        raw = params.get(name)
        if isinstance(raw, (list, tuple)):
            raw = raw[-1] if raw else None
        if raw is None or raw == "":
            if spec.required:
                raise QueryValidationError(f"Missing required parameter: {name}", fields=[name])
            if spec.default is None:
                continue
            raw = spec.default

        value = coerce_value(raw, spec.type, name)
        if spec.allowed is not None and value not in spec.allowed:
            log.warning("filter_value_not_allowed", extra={"param": name, "value": value})
            continue

        if spec.any_of:
            criteria.add(AnyOf(tuple(Condition(f, spec.operator, value) for f in spec.any_of)))
        else:
            criteria.add(Condition(spec.target or name, spec.operator, value))
    return criteria
