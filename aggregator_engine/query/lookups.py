from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional

from ..dates import parse_datetime
from ..errors import QueryValidationError
from .criteria import OPERATORS, PATTERN_OPERATORS, Condition, Criteria

log = logging.getLogger(__name__)

LOOKUP_SEPARATOR = "__"
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


@dataclass(frozen=True)
class FieldLookup:
    field: str
    operator: str


def to_snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def default_operator(field_type: Optional[str]) -> str:
    # Free text matches loosely; numbers, dates and enums match exactly
    return "icontains" if field_type in (None, "string") else "exact"


def parse_field_lookup(key: str, field_types: Optional[Mapping[str, str]] = None) -> FieldLookup:
    """Split ``field__operator`` into its parts.

    ``temperature__gte`` gives ``("temperature", "gte")``. A key without a
    recognized operator suffix gets the default operator of its field type:
    ``icontains`` for strings (and for fields of unknown type), ``exact``
    otherwise. camelCase names are converted to snake_case.
    """
    name, sep, suffix = key.rpartition(LOOKUP_SEPARATOR)
    if sep and name and suffix in OPERATORS:
        field = to_snake_case(name)
        return FieldLookup(field, suffix)
    field = to_snake_case(key)
    field_type = (field_types or {}).get(field)
    return FieldLookup(field, default_operator(field_type))


def coerce_value(value: Any, field_type: str, name: str) -> Any:
    """Coerce one raw query value to the python type of its field."""
    if isinstance(value, str):
        value = value.strip()
    try:
        if field_type == "number":
            return float(value)
        if field_type == "integer":
            return int(value)
        if field_type == "boolean":
            if isinstance(value, bool):
                return value
            return str(value).lower() == "true"
        if field_type == "date":
            return parse_datetime(value)
    except (TypeError, ValueError) as e:
        raise QueryValidationError(
            f"Invalid value for '{name}': expected {field_type}", fields=[name]
        ) from e
    return value


def _as_list(value: Any, key: str) -> List[Any]:
    if isinstance(value, (list, tuple)):
        items = list(value)
        # A single repeated value may itself be comma separated
        if len(items) == 1 and isinstance(items[0], str):
            items = items[0].split(",")
    elif isinstance(value, str) and value.strip():
        items = value.split(",")
    else:
        raise QueryValidationError(f"Lookup '{key}' requires a list of values", fields=[key])
    items = [v.strip() if isinstance(v, str) else v for v in items]
    items = [v for v in items if v != ""]
    if not items:
        raise QueryValidationError(f"Lookup '{key}' requires a list of values", fields=[key])
    return items


def build_lookup_criteria(
    params: Mapping[str, Any],
    field_types: Mapping[str, str],
    exclude: Iterable[str] = (),
) -> Criteria:
    """Turn ``field__operator=value`` query parameters into criteria.

    Keys naming an unknown field are skipped. Keys in ``exclude`` are left to
    the caller (typically the keys a filter schema already consumed).
    """
    skip = set(exclude)
    criteria = Criteria()
    for key, raw in params.items():
        if key in skip:
            continue
        lookup = parse_field_lookup(key, field_types)
        field_type = field_types.get(lookup.field)
        if field_type is None:
            log.debug("lookup_skipped", extra={"key": key})
            continue

        if lookup.operator in ("in", "between"):
            values = [coerce_value(v, field_type, key) for v in _as_list(raw, key)]
            if lookup.operator == "between" and len(values) != 2:
                raise QueryValidationError(
                    f"Lookup '{key}' requires exactly two values", fields=[key]
                )
            criteria.add(Condition(lookup.field, lookup.operator, values))
            continue

        if lookup.operator in PATTERN_OPERATORS and field_type != "string":
            raise QueryValidationError(
                f"Lookup '{key}' only applies to text fields", fields=[key]
            )
        if isinstance(raw, (list, tuple)):
            raw = raw[-1]
        if lookup.operator == "isnull":
            value = coerce_value(raw, "boolean", key)
        else:
            value = coerce_value(raw, field_type, key)
        criteria.add(Condition(lookup.field, lookup.operator, value))
    return criteria
