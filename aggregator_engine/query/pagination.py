from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..errors import QueryValidationError
from .criteria import Criteria
from .lookups import to_snake_case

SortOrder = List[Tuple[str, str]]


@dataclass(frozen=True)
class PaginationParams:
    page: int
    limit: int
    offset: int


def _int_param(query: Mapping[str, Any], name: str, minimum: int) -> Optional[int]:
    raw = query.get(name)
    if isinstance(raw, (list, tuple)):
        raw = raw[-1] if raw else None
    if raw is None or raw == "":
        return None
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise QueryValidationError(f"'{name}' must be an integer", fields=[name]) from None
    if value < minimum:
        raise QueryValidationError(f"'{name}' must be >= {minimum}", fields=[name])
    return value


def get_pagination_params(
    query: Mapping[str, Any],
    default_limit: int = 10,
    max_limit: int = 100,
) -> PaginationParams:
    """Read ``page``/``limit``/``offset`` from query parameters.

    An explicit ``offset`` wins over the offset implied by ``page``; when only
    ``offset`` is given the page is derived from it.
    """
    page = _int_param(query, "page", 1)
    limit = _int_param(query, "limit", 1) or default_limit
    limit = min(limit, max_limit)
    offset = _int_param(query, "offset", 0)

    if offset is None:
        page = page or 1
        offset = (page - 1) * limit
    elif page is None:
        page = offset // limit + 1
    return PaginationParams(page=page, limit=limit, offset=offset)


def parse_sort(sort: Any) -> SortOrder:
    """Parse ``"name,-created_at"`` or ``"timestamp:ASC"`` into ``(field, direction)`` pairs."""
    if isinstance(sort, (list, tuple)):
        sort = ",".join(str(s) for s in sort)
    if not sort:
        return []
    order: SortOrder = []
    for part in str(sort).split(","):
        part = part.strip()
        if not part:
            continue
        if ":" in part:
            name, _, direction = part.partition(":")
            direction = direction.strip().upper()
            if direction not in ("ASC", "DESC"):
                raise QueryValidationError(f"Invalid sort direction: {direction}", fields=["sort"])
        elif part.startswith("-"):
            name, direction = part[1:], "DESC"
        else:
            name, direction = part, "ASC"
        name = name.strip()
        if name:
            order.append((to_snake_case(name), direction))
    return order


def get_pagination_metadata(params: PaginationParams, total: int) -> Dict[str, Any]:
    total_pages = math.ceil(total / params.limit) if params.limit else 0
    return {
        "totalItems": total,
        "totalPages": total_pages,
        "currentPage": params.page,
        "itemsPerPage": params.limit,
        "hasNextPage": params.page < total_pages,
        "hasPreviousPage": params.page > 1,
    }


async def get_paginated_data(
    repository: Any,
    criteria: Optional[Criteria],
    order: Optional[Sequence[Tuple[str, str]]],
    params: PaginationParams,
) -> Dict[str, Any]:
    """Fetch one page and the total count concurrently."""
    items, total = await asyncio.gather(
        asyncio.to_thread(repository.find_all, criteria, order, params.limit, params.offset),
        asyncio.to_thread(repository.count, criteria),
    )
    return {"items": items, "pagination": get_pagination_metadata(params, total)}
