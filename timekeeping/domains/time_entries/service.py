from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from timekeeping.core.config import settings
from timekeeping.core.errors import InvalidStateError, NotFoundError, ValidationError
from timekeeping.core.logging import get_logger
from timekeeping.core.observability import approvals_counter
from timekeeping.db.session import commit_or_fail, naive_utc
from timekeeping.domains.directory import get_employee, get_project
from timekeeping.models import DailySignIn, TimeEntry, Timesheet
from timekeeping.states import (
    EntryStatus,
    TimesheetStatus,
    WorkType,
    ensure_entry_editable,
    ensure_entry_transition,
    parse_work_type,
)

logger = get_logger(__name__)


@dataclass
class TimeEntryData:
    employee_id: str
    project_id: str
    date: date
    hours_worked: float
    work_type: str = WorkType.REGULAR.value
    description: Optional[str] = None
    task_performed: Optional[str] = None
    hourly_rate: Optional[float] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    sign_in_id: Optional[str] = None


UPDATABLE_FIELDS = frozenset(
    {
        "project_id",
        "date",
        "hours_worked",
        "work_type",
        "description",
        "task_performed",
        "hourly_rate",
        "start_time",
        "end_time",
    }
)


def validate_hours(hours: Any, employee_id: str | None = None) -> Decimal:
    try:
        value = Decimal(str(hours))
    except (ArithmeticError, ValueError, TypeError) as exc:
        raise ValidationError(f"Hours worked must be a number, got {hours!r}", field="hours_worked") from exc
    limit = Decimal(str(settings.max_hours_per_entry))
    if not value.is_finite() or value <= 0 or value > limit:
        raise ValidationError(
            f"Hours worked must be greater than 0 and at most {settings.max_hours_per_entry:g}",
            field="hours_worked",
            value=str(hours),
            employee_id=employee_id,
        )
    return value


def _validate_rate(rate: Any) -> Optional[Decimal]:
    if rate is None:
        return None
    try:
        value = Decimal(str(rate))
    except (ArithmeticError, ValueError, TypeError) as exc:
        raise ValidationError(f"Hourly rate must be a number, got {rate!r}", field="hourly_rate") from exc
    if not value.is_finite() or value < 0:
        raise ValidationError("Hourly rate cannot be negative", field="hourly_rate", value=str(rate))
    return value


def _require_id(value: str | None, field_name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required", field=field_name)
    return str(value).strip()


def build_entry(db: Session, data: TimeEntryData, created_by: str) -> TimeEntry:
    employee_id = _require_id(data.employee_id, "employee_id")
    project_id = _require_id(data.project_id, "project_id")
    hours = validate_hours(data.hours_worked, employee_id)
    work_type = parse_work_type(data.work_type)
    if data.date is None:
        raise ValidationError("date is required", field="date")
    get_employee(db, employee_id)
    get_project(db, project_id)
    return TimeEntry(
        employee_id=employee_id,
        project_id=project_id,
        date=data.date,
        hours_worked=hours,
        work_type=work_type.value,
        description=data.description,
        task_performed=data.task_performed,
        hourly_rate=_validate_rate(data.hourly_rate),
        start_time=naive_utc(data.start_time),
        end_time=naive_utc(data.end_time),
        sign_in_id=data.sign_in_id,
        status=EntryStatus.PENDING.value,
        created_by=created_by,
    )


def get_entry(db: Session, entry_id: str) -> TimeEntry:
    entry = db.get(TimeEntry, entry_id)
    if entry is None:
        raise NotFoundError("Time entry", entry_id)
    return entry


def create_entry(db: Session, data: TimeEntryData, *, created_by: str) -> TimeEntry:
    entry = build_entry(db, data, created_by)
    db.add(entry)
    commit_or_fail(db, "create time entry")
    db.refresh(entry)
    logger.info(
        "time_entry_created",
        time_entry_id=entry.id,
        employee_id=entry.employee_id,
        project_id=entry.project_id,
        hours_worked=float(entry.hours_worked),
        created_by=created_by,
    )
    return entry


def bulk_create_entries(db: Session, entries: Iterable[TimeEntryData], *, created_by: str) -> List[TimeEntry]:
    """All-or-nothing: every entry is validated before any row is written."""

    payload = list(entries)
    if not payload:
        raise ValidationError("At least one time entry is required", field="entries")
    built = [build_entry(db, data, created_by) for data in payload]
    db.add_all(built)
    commit_or_fail(db, "create time entries")
    for entry in built:
        db.refresh(entry)
    logger.info("time_entries_bulk_created", count=len(built), created_by=created_by)
    return built


def update_entry(db: Session, entry_id: str, changes: Dict[str, Any], *, updated_by: str) -> TimeEntry:
    entry = get_entry(db, entry_id)
    ensure_entry_editable(entry.status, entry_id)

    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}", fields=sorted(unknown))

    values: Dict[str, Any] = {}
    for key, value in changes.items():
        if key == "hours_worked":
            values[key] = validate_hours(value, entry.employee_id)
        elif key == "work_type":
            values[key] = parse_work_type(value).value
        elif key == "project_id":
            values[key] = get_project(db, _require_id(value, "project_id")).id
        elif key == "hourly_rate":
            values[key] = _validate_rate(value)
        elif key == "date" and value is None:
            raise ValidationError("date is required", field="date")
        elif key in ("start_time", "end_time"):
            values[key] = naive_utc(value)
        else:
            values[key] = value
    values["updated_by"] = updated_by
    values["updated_at"] = datetime.utcnow()

    # Guarded on PENDING so a concurrent approval wins over the edit.
    updated = (
        db.query(TimeEntry)
        .filter(TimeEntry.id == entry_id, TimeEntry.status == EntryStatus.PENDING.value)
        .update({getattr(TimeEntry, key): value for key, value in values.items()}, synchronize_session=False)
    )
    if not updated:
        db.rollback()
        _raise_not_pending(db, entry_id, "edited")

    commit_or_fail(db, "update time entry")
    db.refresh(entry)
    logger.info("time_entry_updated", time_entry_id=entry_id, fields=sorted(changes), updated_by=updated_by)
    return entry


def delete_entry(db: Session, entry_id: str, *, deleted_by: str | None = None) -> None:
    entry = get_entry(db, entry_id)
    if entry.timesheet_id:
        timesheet = db.get(Timesheet, entry.timesheet_id)
        if timesheet is not None and timesheet.status != TimesheetStatus.DRAFT.value:
            raise InvalidStateError(
                f"Time entry {entry_id} belongs to {timesheet.status} timesheet {timesheet.id}",
                current=timesheet.status,
                id=entry_id,
                timesheet_id=timesheet.id,
            )
    db.delete(entry)
    commit_or_fail(db, "delete time entry")
    logger.info("time_entry_deleted", time_entry_id=entry_id, deleted_by=deleted_by)


def _raise_not_pending(db: Session, entry_id: str, action: str) -> None:
    current = db.get(TimeEntry, entry_id)
    if current is None:
        raise NotFoundError("Time entry", entry_id)
    db.refresh(current)
    raise InvalidStateError(
        f"Time entry {entry_id} is {current.status} and cannot be {action}",
        current=current.status,
        id=entry_id,
    )


def _decide(db: Session, entry_id: str, target: EntryStatus, approver_id: str, reason: str | None = None) -> TimeEntry:
    entry = get_entry(db, entry_id)
    ensure_entry_transition(entry.status, target, entry_id)

    values: Dict[Any, Any] = {
        TimeEntry.status: target.value,
        TimeEntry.approved_by: approver_id,
        TimeEntry.approved_at: datetime.utcnow(),
        TimeEntry.updated_by: approver_id,
    }
    if target is EntryStatus.REJECTED:
        values[TimeEntry.rejection_reason] = reason

    # Compare-and-set: only one concurrent decision can match PENDING.
    updated = (
        db.query(TimeEntry)
        .filter(TimeEntry.id == entry_id, TimeEntry.status == EntryStatus.PENDING.value)
        .update(values, synchronize_session=False)
    )
    if not updated:
        db.rollback()
        _raise_not_pending(db, entry_id, target.value.lower())

    commit_or_fail(db, f"mark time entry {target.value.lower()}")
    db.refresh(entry)
    approvals_counter.add(1, {"outcome": target.value})
    return entry


def approve_entry(db: Session, entry_id: str, *, approver_id: str) -> TimeEntry:
    entry = _decide(db, entry_id, EntryStatus.APPROVED, approver_id)
    logger.info("time_entry_approved", time_entry_id=entry_id, approved_by=approver_id)
    return entry


def reject_entry(db: Session, entry_id: str, *, approver_id: str, reason: str) -> TimeEntry:
    if reason is None or not reason.strip():
        raise ValidationError("A rejection reason is required", field="reason")
    entry = _decide(db, entry_id, EntryStatus.REJECTED, approver_id, reason.strip())
    logger.info("time_entry_rejected", time_entry_id=entry_id, approved_by=approver_id, reason=entry.rejection_reason)
    return entry


def list_by_date(
    db: Session,
    on_date: date,
    *,
    employee_id: str | None = None,
    project_id: str | None = None,
    status: str | EntryStatus | None = None,
) -> List[TimeEntry]:
    query = db.query(TimeEntry).filter(TimeEntry.date == on_date)
    if employee_id:
        query = query.filter(TimeEntry.employee_id == employee_id)
    if project_id:
        query = query.filter(TimeEntry.project_id == project_id)
    if status:
        query = query.filter(TimeEntry.status == EntryStatus(status).value)
    return query.order_by(TimeEntry.created_at.desc(), TimeEntry.id).all()


def list_by_employee(db: Session, employee_id: str, start: date, end: date) -> List[TimeEntry]:
    return (
        db.query(TimeEntry)
        .filter(TimeEntry.employee_id == employee_id, TimeEntry.date >= start, TimeEntry.date <= end)
        .order_by(TimeEntry.date.desc(), TimeEntry.created_at.desc())
        .all()
    )


def list_by_project(db: Session, project_id: str, start: date, end: date) -> List[TimeEntry]:
    return (
        db.query(TimeEntry)
        .filter(TimeEntry.project_id == project_id, TimeEntry.date >= start, TimeEntry.date <= end)
        .order_by(TimeEntry.date.desc(), TimeEntry.created_at.desc())
        .all()
    )


def list_unapproved(db: Session) -> List[TimeEntry]:
    """Approval queue: everything still PENDING, newest work date first."""

    return (
        db.query(TimeEntry)
        .filter(TimeEntry.status == EntryStatus.PENDING.value)
        .order_by(TimeEntry.date.desc(), TimeEntry.created_at.desc())
        .all()
    )


def day_total(db: Session, employee_id: str, on_date: date) -> float:
    total = (
        db.query(func.coalesce(func.sum(TimeEntry.hours_worked), 0))
        .filter(TimeEntry.employee_id == employee_id, TimeEntry.date == on_date)
        .scalar()
    )
    return float(total)


def hours_between(start: datetime, end: datetime) -> float:
    return round((end - start).total_seconds() / 3600, 2)


def auto_create_from_sign_in(db: Session, sign_in_id: str, project_id: str, *, created_by: str) -> TimeEntry:
    sign_in = db.get(DailySignIn, sign_in_id)
    if sign_in is None:
        raise NotFoundError("Sign-in", sign_in_id)
    if sign_in.sign_out_time is None:
        raise InvalidStateError(
            f"Employee {sign_in.employee_id} has not signed out yet",
            current="ACTIVE",
            id=sign_in_id,
        )

    employee = get_employee(db, sign_in.employee_id)
    data = TimeEntryData(
        employee_id=sign_in.employee_id,
        project_id=project_id,
        date=sign_in.date,
        hours_worked=hours_between(sign_in.sign_in_time, sign_in.sign_out_time),
        work_type=WorkType.REGULAR.value,
        hourly_rate=float(employee.hourly_rate) if employee.hourly_rate is not None else None,
        start_time=sign_in.sign_in_time,
        end_time=sign_in.sign_out_time,
        sign_in_id=sign_in_id,
    )
    entry = create_entry(db, data, created_by=created_by)
    logger.info(
        "time_entry_created_from_sign_in",
        sign_in_id=sign_in_id,
        time_entry_id=entry.id,
        hours_worked=data.hours_worked,
    )
    return entry