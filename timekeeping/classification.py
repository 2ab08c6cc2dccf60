from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Generic, Iterable, List, Mapping, Optional, TypeVar

from .core.config import DEFAULT_CLASSIFICATION_RANKS
from .overtime import HoursBreakdown, aggregate_hours

UNRANKED = 999

_SEPARATORS = re.compile(r"[\s\-]+")

Entry = TypeVar("Entry")


def _normalize(classification: str) -> str:
    return _SEPARATORS.sub("_", classification.strip()).upper()


class ClassificationRanks:
    """Immutable classification -> sort priority table."""

    def __init__(self, ranks: Optional[Mapping[str, int]] = None, default: int = UNRANKED) -> None:
        source = DEFAULT_CLASSIFICATION_RANKS if ranks is None else ranks
        self._ranks = MappingProxyType({_normalize(key): int(value) for key, value in source.items()})
        self.default = default

    @property
    def table(self) -> Mapping[str, int]:
        return self._ranks

    def rank(self, classification: Optional[str]) -> int:
        if not classification:
            return self.default
        return self._ranks.get(_normalize(classification), self.default)

    def __repr__(self) -> str:
        return f"ClassificationRanks({dict(self._ranks)!r}, default={self.default})"


DEFAULT_RANKS = ClassificationRanks()


@dataclass
class EmployeeGroup(Generic[Entry]):
    employee_id: str
    entries: List[Entry] = field(default_factory=list)
    subtotal: HoursBreakdown = field(default_factory=HoursBreakdown)

    @property
    def classification(self) -> Optional[str]:
        if not self.entries:
            return None
        return getattr(self.entries[0], "classification", None)


def group_and_sort_by_employee(
    entries: Iterable[Any], ranks: ClassificationRanks = DEFAULT_RANKS
) -> List[EmployeeGroup]:
    """Group entries per employee and order groups by classification rank.

    Groups keep first-seen order for equal ranks (``sorted`` is stable).
    """

    grouped: Dict[str, EmployeeGroup] = {}
    for entry in entries:
        group = grouped.get(entry.employee_id)
        if group is None:
            group = grouped[entry.employee_id] = EmployeeGroup(employee_id=entry.employee_id)
        group.entries.append(entry)

    for group in grouped.values():
        group.subtotal = aggregate_hours(group.entries)

    def sort_key(group: EmployeeGroup):
        if not group.entries:
            return (1, ranks.default)
        return (0, ranks.rank(group.classification))

    return sorted(grouped.values(), key=sort_key)
