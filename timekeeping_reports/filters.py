from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional

from .data import EntryRow


def filter_entries(
    entries: Iterable[EntryRow],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    employee_ids: Optional[List[str]] = None,
    project_ids: Optional[List[str]] = None,
    statuses: Optional[List[str]] = None,
) -> List[EntryRow]:
    """Filter entry rows by date range, employees, projects and statuses."""

    def matches(entry: EntryRow) -> bool:
        if start_date and entry.date < start_date:
            return False
        if end_date and entry.date > end_date:
            return False
        if employee_ids and entry.employee_id not in employee_ids:
            return False
        if project_ids and entry.project_id not in project_ids:
            return False
        if statuses and entry.status not in statuses:
            return False
        return True

    return [entry for entry in entries if matches(entry)]
