from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import String, bindparam, create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from ..query.criteria import PATTERN_OPERATORS, AnyOf, Condition, Criteria
from .entities import EntitySpec

_LIKE_ESCAPE = "\\"


def _escape_like(value: Any) -> str:
    s = str(value)
    for ch in (_LIKE_ESCAPE, "%", "_"):
        s = s.replace(ch, _LIKE_ESCAPE + ch)
    return s


class _SqlBuilder:
    """Accumulates bound parameters while rendering WHERE fragments."""

    def __init__(self, table) -> None:
        self.table = table
        self.params: List[Any] = []

    def bind(self, column: str, value: Any, *, like: bool = False, expanding: bool = False) -> str:
        name = f"p{len(self.params)}"
        type_ = String() if like else self.table.c[column].type
        self.params.append(bindparam(name, value, type_=type_, expanding=expanding))
        return f":{name}"

    def condition(self, cond: Condition) -> str:
        col, op, value = cond.field, cond.operator, cond.value
        if op == "exact":
            if value is None:
                return f"{col} IS NULL"
            return f"{col} = {self.bind(col, value)}"
        if op == "iexact":
            return f"lower({col}) = lower({self.bind(col, value, like=True)})"
        if op in PATTERN_OPERATORS:
            pattern = _escape_like(value)
            base = op[1:] if op.startswith("i") else op
            if base == "contains":
                pattern = f"%{pattern}%"
            elif base == "startswith":
                pattern = f"{pattern}%"
            else:
                pattern = f"%{pattern}"
            placeholder = self.bind(col, pattern, like=True)
            if op.startswith("i"):
                return f"lower({col}) LIKE lower({placeholder}) ESCAPE '{_LIKE_ESCAPE}'"
            return f"{col} LIKE {placeholder} ESCAPE '{_LIKE_ESCAPE}'"
        if op in ("gt", "gte", "lt", "lte"):
            sym = {"gt": ">", "gte": ">=", "lt": "<", "lte": "<="}[op]
            return f"{col} {sym} {self.bind(col, value)}"
        if op == "in":
            return f"{col} IN {self.bind(col, list(value), expanding=True)}"
        if op == "between":
            return f"{col} BETWEEN {self.bind(col, value[0])} AND {self.bind(col, value[1])}"
        # isnull
        return f"{col} IS NULL" if value else f"{col} IS NOT NULL"

    def where(self, criteria: Optional[Criteria]) -> str:
        parts = []
        for clause in criteria or ():
            if isinstance(clause, AnyOf):
                parts.append("(" + " OR ".join(self.condition(c) for c in clause.conditions) + ")")
            else:
                parts.append(self.condition(clause))
        return f" WHERE {' AND '.join(parts)}" if parts else ""


class DriverBackend:
    """Storage backend issuing hand-written SQL over short-lived connections.

    No connection is pooled between calls (``NullPool``), which suits
    serverless Postgres endpoints that drop idle connections. Statements are
    plain ``text()`` with typed bind parameters, so values go through the same
    type processing as the ORM (UTC datetimes on SQLite included).
    """

    def __init__(self, entity: EntitySpec, database_url: str, engine: Optional[Engine] = None) -> None:
        self.entity = entity
        self.table = entity.table
        self.engine = engine or create_engine(database_url, future=True, poolclass=NullPool)

    def _statement(self, sql: str, params: Sequence[Any] = (), returns_rows: bool = True):
        stmt = text(sql)
        if params:
            stmt = stmt.bindparams(*params)
        if returns_rows:
            stmt = stmt.columns(*[self.table.c[name] for name in self.entity.columns])
        return stmt

    def _rows(self, result) -> List[Dict[str, Any]]:
        return [dict(zip(self.entity.columns, row)) for row in result]

    @property
    def _column_list(self) -> str:
        return ", ".join(self.entity.columns)

    def insert(self, values: Dict[str, Any]) -> Dict[str, Any]:
        builder = _SqlBuilder(self.table)
        names = list(values)
        placeholders = ", ".join(builder.bind(name, values[name]) for name in names)
        sql = (
            f"INSERT INTO {self.table.name} ({', '.join(names)}) VALUES ({placeholders}) "
            f"RETURNING {self._column_list}"
        )
        with self.engine.begin() as conn:
            return self._rows(conn.execute(self._statement(sql, builder.params)))[0]

    def get(self, record_id: Any) -> Optional[Dict[str, Any]]:
        builder = _SqlBuilder(self.table)
        sql = f"SELECT {self._column_list} FROM {self.table.name} WHERE id = {builder.bind('id', record_id)}"
        with self.engine.connect() as conn:
            rows = self._rows(conn.execute(self._statement(sql, builder.params)))
        return rows[0] if rows else None

    def select(
        self,
        criteria: Optional[Criteria],
        order: Sequence[Tuple[str, str]],
        limit: Optional[int],
        offset: Optional[int],
    ) -> List[Dict[str, Any]]:
        builder = _SqlBuilder(self.table)
        sql = f"SELECT {self._column_list} FROM {self.table.name}{builder.where(criteria)}"
        order_sql = [f"{name} {direction}" for name, direction in order] + ["id ASC"]
        sql += " ORDER BY " + ", ".join(order_sql)
        if limit is not None:
            sql += f" LIMIT {builder.bind('id', int(limit))}"
            if offset:
                sql += f" OFFSET {builder.bind('id', int(offset))}"
        with self.engine.connect() as conn:
            rows = self._rows(conn.execute(self._statement(sql, builder.params)))
        if limit is None and offset:
            rows = rows[offset:]
        return rows

    def update(self, record_id: Any, values: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        builder = _SqlBuilder(self.table)
        assignments = ", ".join(f"{name} = {builder.bind(name, value)}" for name, value in values.items())
        sql = (
            f"UPDATE {self.table.name} SET {assignments} WHERE id = {builder.bind('id', record_id)} "
            f"RETURNING {self._column_list}"
        )
        with self.engine.begin() as conn:
            rows = self._rows(conn.execute(self._statement(sql, builder.params)))
        return rows[0] if rows else None

    def delete(self, record_id: Any) -> bool:
        builder = _SqlBuilder(self.table)
        sql = f"DELETE FROM {self.table.name} WHERE id = {builder.bind('id', record_id)}"
        with self.engine.begin() as conn:
            result = conn.execute(self._statement(sql, builder.params, returns_rows=False))
        return result.rowcount > 0

    def count(self, criteria: Optional[Criteria]) -> int:
        builder = _SqlBuilder(self.table)
        sql = f"SELECT COUNT(*) FROM {self.table.name}{builder.where(criteria)}"
        with self.engine.connect() as conn:
            return int(conn.execute(self._statement(sql, builder.params, returns_rows=False)).scalar_one())

    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
