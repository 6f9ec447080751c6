from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from ..query.criteria import Criteria

# Public surface every repository must expose; checked by the factory.
REQUIRED_METHODS = (
    "create",
    "find_by_id",
    "find_all",
    "update",
    "delete",
    "count",
    "validate",
    "save",
    "check_connection",
)


class StorageBackend(Protocol):
    """Row-level operations a repository delegates to.

    Rows cross this boundary as plain dicts keyed by column name. Backends
    raise ``sqlalchemy.exc.SQLAlchemyError`` subclasses and leave error
    classification to the repository.
    """

    def insert(self, values: Dict[str, Any]) -> Dict[str, Any]: ...

    def get(self, record_id: Any) -> Optional[Dict[str, Any]]: ...

    def select(
        self,
        criteria: Optional[Criteria],
        order: Sequence[Tuple[str, str]],
        limit: Optional[int],
        offset: Optional[int],
    ) -> List[Dict[str, Any]]: ...

    def update(self, record_id: Any, values: Dict[str, Any]) -> Optional[Dict[str, Any]]: ...

    def delete(self, record_id: Any) -> bool: ...

    def count(self, criteria: Optional[Criteria]) -> int: ...

    def ping(self) -> None: ...
