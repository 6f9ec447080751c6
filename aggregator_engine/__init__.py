"""Aggregator engine package.

Subpackages:
- providers: HTTP clients and transformers for weather/news providers.
- query: Criteria, filter schemas, suffix lookups and pagination.
- storage: SQLAlchemy tables, validation and the repository backends.
"""

__all__ = [
    "dates",
    "errors",
    "providers",
    "query",
    "storage",
]
