"""Error taxonomy shared by providers, the query layer and repositories.

Callers branch on the class, never on message text:

- ``ValidationError`` / ``QueryValidationError``: bad input, surfaced with field detail.
- ``NotFoundError``: update/delete against a missing id.
- ``DuplicateError``: unique-constraint violation; ingestion skips these.
- ``UpstreamProviderError``: non-2xx or malformed provider response.
- ``RepositoryError``: any other storage failure, with the operation name.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence


class AggregatorError(Exception):
    code: str = "aggregator_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(AggregatorError):
    code = "validation_error"

    def __init__(self, message: str, fields: Optional[Sequence[str]] = None) -> None:
        self.fields: List[str] = list(fields or [])
        super().__init__(message)


class QueryValidationError(ValidationError):
    """Raised for malformed HTTP query parameters (maps to 400)."""

    code = "invalid_query"


class NotFoundError(AggregatorError):
    code = "not_found"

    def __init__(self, entity: str, record_id: Any) -> None:
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity} record with id={record_id} not found")


class DuplicateError(AggregatorError):
    code = "duplicate"

    def __init__(self, entity: str, field: str, value: Any) -> None:
        self.entity = entity
        self.field = field
        self.value = value
        super().__init__(f"Duplicate {entity} record: {field}={value} already exists")


class UpstreamProviderError(AggregatorError):
    code = "upstream_error"

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None) -> None:
        self.provider = provider
        self.status_code = status_code
        prefix = f"{provider} API error"
        if status_code is not None:
            prefix = f"{prefix}: {status_code}"
        super().__init__(f"{prefix} - {message}")


class RepositoryError(AggregatorError):
    code = "repository_error"

    def __init__(self, entity: str, operation: str, message: str) -> None:
        self.entity = entity
        self.operation = operation
        super().__init__(f"{entity} repository {operation} operation failed: {message}")
