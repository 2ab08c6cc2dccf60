from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol, Tuple

from .states import WorkType


class HoursSource(Protocol):
    employee_id: str
    project_id: str
    hours_worked: float
    work_type: str


@dataclass
class HoursBreakdown:
    """Regular/overtime buckets for a set of time entries.

    ``total_hours`` counts every hour once, as physically worked. DoubleTime
    hours are weighted 2x in ``overtime_hours`` only, so for DoubleTime work
    ``overtime_hours`` exceeds the share of ``total_hours`` it came from.
    """

    total_hours: float = 0.0
    regular_hours: float = 0.0
    overtime_hours: float = 0.0

    def add(self, hours: float, work_type: str | WorkType | None) -> None:
        hours = float(hours)
        self.total_hours += hours
        kind = _work_type_or_none(work_type)
        if kind is WorkType.OVERTIME:
            self.overtime_hours += hours
        elif kind is WorkType.DOUBLE_TIME:
            self.overtime_hours += hours * 2
        else:
            self.regular_hours += hours

    def merge(self, other: HoursBreakdown) -> HoursBreakdown:
        self.total_hours += other.total_hours
        self.regular_hours += other.regular_hours
        self.overtime_hours += other.overtime_hours
        return self


def _work_type_or_none(value: str | WorkType | None) -> WorkType | None:
    try:
        return WorkType(value)
    except ValueError:
        return None


class OvertimeAggregator:
    """Pure bucketing of time entries; callers choose which statuses to pass."""

    def aggregate(self, entries: Iterable[HoursSource]) -> HoursBreakdown:
        breakdown = HoursBreakdown()
        for entry in entries:
            breakdown.add(entry.hours_worked, entry.work_type)
        return breakdown

    def distinct_counts(self, entries: Iterable[HoursSource]) -> Tuple[int, int]:
        employees = set()
        projects = set()
        for entry in entries:
            employees.add(entry.employee_id)
            projects.add(entry.project_id)
        return len(employees), len(projects)


def aggregate_hours(entries: Iterable[HoursSource]) -> HoursBreakdown:
    return OvertimeAggregator().aggregate(entries)
