from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, List, Mapping, Tuple, Union

OPERATORS = frozenset(
    {
        "exact",
        "iexact",
        "contains",
        "icontains",
        "startswith",
        "istartswith",
        "endswith",
        "iendswith",
        "gt",
        "gte",
        "lt",
        "lte",
        "in",
        "between",
        "isnull",
    }
)

# Operators whose value is matched as a substring/prefix/suffix pattern
PATTERN_OPERATORS = frozenset(
    {"contains", "icontains", "startswith", "istartswith", "endswith", "iendswith"}
)


@dataclass(frozen=True)
class Condition:
    field: str
    operator: str
    value: Any

    def __post_init__(self) -> None:
        if self.operator not in OPERATORS:
            raise ValueError(f"Unsupported operator: {self.operator}")


@dataclass(frozen=True)
class AnyOf:
    """OR-group of conditions."""

    conditions: Tuple[Condition, ...]


Clause = Union[Condition, AnyOf]


@dataclass
class Criteria:
    """AND-list of clauses, independent of any storage backend."""

    clauses: List[Clause] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "Criteria":
        return cls([Condition(name, "exact", value) for name, value in mapping.items()])

    def add(self, clause: Clause) -> "Criteria":
        self.clauses.append(clause)
        return self

    def extend(self, other: "Criteria") -> "Criteria":
        self.clauses.extend(other.clauses)
        return self

    def fields(self) -> List[str]:
        names: List[str] = []
        for clause in self.clauses:
            if isinstance(clause, AnyOf):
                names.extend(c.field for c in clause.conditions)
            else:
                names.append(clause.field)
        return names

    def __iter__(self) -> Iterator[Clause]:
        return iter(self.clauses)

    def __len__(self) -> int:
        return len(self.clauses)
