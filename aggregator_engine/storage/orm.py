from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, or_, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from ..query.criteria import AnyOf, Condition, Criteria
from .entities import EntitySpec


class OrmBackend:
    """Storage backend on the SQLAlchemy ORM over a long-lived engine."""

    def __init__(self, entity: EntitySpec, engine: Engine) -> None:
        self.entity = entity
        self.engine = engine
        self.model = entity.model

    def _to_dict(self, obj: Any) -> Dict[str, Any]:
        return {name: getattr(obj, name) for name in self.entity.columns}

    def _condition(self, cond: Condition):
        col = getattr(self.model, cond.field)
        op, value = cond.operator, cond.value
        if op == "exact":
            return col.is_(None) if value is None else col == value
        if op == "iexact":
            return func.lower(col) == str(value).lower()
        if op == "contains":
            return col.contains(value, autoescape=True)
        if op == "icontains":
            return col.icontains(value, autoescape=True)
        if op == "startswith":
            return col.startswith(value, autoescape=True)
        if op == "istartswith":
            return col.istartswith(value, autoescape=True)
        if op == "endswith":
            return col.endswith(value, autoescape=True)
        if op == "iendswith":
            return col.iendswith(value, autoescape=True)
        if op == "gt":
            return col > value
        if op == "gte":
            return col >= value
        if op == "lt":
            return col < value
        if op == "lte":
            return col <= value
        if op == "in":
            return col.in_(list(value))
        if op == "between":
            return col.between(value[0], value[1])
        # isnull
        return col.is_(None) if value else col.is_not(None)

    def _where(self, stmt, criteria: Optional[Criteria]):
        for clause in criteria or ():
            if isinstance(clause, AnyOf):
                stmt = stmt.where(or_(*[self._condition(c) for c in clause.conditions]))
            else:
                stmt = stmt.where(self._condition(clause))
        return stmt

    def insert(self, values: Dict[str, Any]) -> Dict[str, Any]:
        with Session(self.engine) as session:
            obj = self.model(**values)
            session.add(obj)
            session.commit()
            session.refresh(obj)
            return self._to_dict(obj)

    def get(self, record_id: Any) -> Optional[Dict[str, Any]]:
        with Session(self.engine) as session:
            obj = session.get(self.model, record_id)
            return None if obj is None else self._to_dict(obj)

    def select(
        self,
        criteria: Optional[Criteria],
        order: Sequence[Tuple[str, str]],
        limit: Optional[int],
        offset: Optional[int],
    ) -> List[Dict[str, Any]]:
        stmt = self._where(select(self.model), criteria)
        for name, direction in order:
            col = getattr(self.model, name)
            stmt = stmt.order_by(col.desc() if direction == "DESC" else col.asc())
        stmt = stmt.order_by(self.model.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        with Session(self.engine) as session:
            return [self._to_dict(obj) for obj in session.execute(stmt).scalars().all()]

    def update(self, record_id: Any, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with Session(self.engine) as session:
            obj = session.get(self.model, record_id)
            if obj is None:
                return None
            for k, v in values.items():
                setattr(obj, k, v)
            session.commit()
            session.refresh(obj)
            return self._to_dict(obj)

    def delete(self, record_id: Any) -> bool:
        with Session(self.engine) as session:
            obj = session.get(self.model, record_id)
            if obj is None:
                return False
            session.delete(obj)
            session.commit()
            return True

    def count(self, criteria: Optional[Criteria]) -> int:
        stmt = self._where(select(func.count()).select_from(self.model), criteria)
        with Session(self.engine) as session:
            return int(session.execute(stmt).scalar_one())

    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
