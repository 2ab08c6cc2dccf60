from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet

from timekeeping.core.errors import InvalidStateError, ValidationError


class WorkType(str, Enum):
    REGULAR = "Regular"
    OVERTIME = "Overtime"
    DOUBLE_TIME = "DoubleTime"


class EntryStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class TimesheetStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"


ENTRY_TRANSITIONS: Dict[EntryStatus, FrozenSet[EntryStatus]] = {
    EntryStatus.PENDING: frozenset({EntryStatus.APPROVED, EntryStatus.REJECTED}),
    EntryStatus.APPROVED: frozenset(),
    EntryStatus.REJECTED: frozenset(),
}

TIMESHEET_TRANSITIONS: Dict[TimesheetStatus, FrozenSet[TimesheetStatus]] = {
    TimesheetStatus.DRAFT: frozenset({TimesheetStatus.SUBMITTED}),
    TimesheetStatus.SUBMITTED: frozenset({TimesheetStatus.APPROVED}),
    TimesheetStatus.APPROVED: frozenset(),
}

# States in which the record's own fields may still be edited.
EDITABLE_ENTRY_STATES = frozenset({EntryStatus.PENDING})
EDITABLE_TIMESHEET_STATES = frozenset({TimesheetStatus.DRAFT, TimesheetStatus.SUBMITTED})


def parse_work_type(value: str | WorkType | None) -> WorkType:
    if value is None or value == "":
        return WorkType.REGULAR
    try:
        return WorkType(value)
    except ValueError as exc:
        allowed = ", ".join(w.value for w in WorkType)
        raise ValidationError(f"Unknown work type {value!r}; expected one of {allowed}", field="work_type") from exc


def ensure_entry_transition(current: str | EntryStatus, target: EntryStatus, entry_id: str) -> None:
    current = EntryStatus(current)
    if target not in ENTRY_TRANSITIONS[current]:
        raise InvalidStateError(
            f"Time entry {entry_id} is {current.value} and cannot become {target.value}",
            current=current.value,
            target=target.value,
            id=entry_id,
        )


def ensure_entry_editable(current: str | EntryStatus, entry_id: str) -> None:
    current = EntryStatus(current)
    if current not in EDITABLE_ENTRY_STATES:
        raise InvalidStateError(
            f"Time entry {entry_id} is {current.value} and can no longer be edited",
            current=current.value,
            id=entry_id,
        )


def ensure_timesheet_transition(current: str | TimesheetStatus, target: TimesheetStatus, timesheet_id: str) -> None:
    current = TimesheetStatus(current)
    if target not in TIMESHEET_TRANSITIONS[current]:
        raise InvalidStateError(
            f"Timesheet {timesheet_id} is {current.value} and cannot become {target.value}",
            current=current.value,
            target=target.value,
            id=timesheet_id,
        )
