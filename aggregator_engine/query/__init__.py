"""Query subpackage: backend-neutral criteria, filter schemas, lookups and pagination."""

from .criteria import OPERATORS, AnyOf, Condition, Criteria
from .filters import NEWS_FILTERS, WEATHER_FILTERS, FieldSpec, process_filters
from .lookups import FieldLookup, build_lookup_criteria, parse_field_lookup
from .pagination import (
    PaginationParams,
    get_paginated_data,
    get_pagination_metadata,
    get_pagination_params,
    parse_sort,
)

__all__ = [
    "OPERATORS",
    "AnyOf",
    "Condition",
    "Criteria",
    "FieldSpec",
    "WEATHER_FILTERS",
    "NEWS_FILTERS",
    "process_filters",
    "FieldLookup",
    "parse_field_lookup",
    "build_lookup_criteria",
    "PaginationParams",
    "get_pagination_params",
    "get_pagination_metadata",
    "get_paginated_data",
    "parse_sort",
]
