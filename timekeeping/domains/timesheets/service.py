from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from timekeeping.classification import ClassificationRanks
from timekeeping.core.config import settings
from timekeeping.core.errors import InvalidStateError, NotFoundError, ValidationError
from timekeeping.core.logging import get_logger
from timekeeping.db.session import commit_or_fail
from timekeeping.domains.time_entries.service import TimeEntryData, build_entry
from timekeeping.models import TimeEntry, Timesheet
from timekeeping.states import (
    EDITABLE_TIMESHEET_STATES,
    EntryStatus,
    TimesheetStatus,
    WorkType,
    ensure_timesheet_transition,
)
from timekeeping_reports.timesheet_pdf import PageGeometry, TimesheetDocument, TimesheetLine, render_timesheet_pdf

logger = get_logger(__name__)


@dataclass
class TimesheetEntryData:
    employee_id: str
    project_id: str
    hours_worked: float
    work_type: str = WorkType.REGULAR.value
    description: Optional[str] = None
    task_performed: Optional[str] = None
    hourly_rate: Optional[float] = None


@dataclass
class TimesheetData:
    date: date
    title: Optional[str] = None
    notes: Optional[str] = None
    entries: List[TimesheetEntryData] = field(default_factory=list)


def _build_lines(db: Session, timesheet: Timesheet, entries: Sequence[TimesheetEntryData], created_by: str) -> List[TimeEntry]:
    built = []
    for line_number, item in enumerate(entries, start=1):
        entry = build_entry(
            db,
            TimeEntryData(
                employee_id=item.employee_id,
                project_id=item.project_id,
                date=timesheet.date,
                hours_worked=item.hours_worked,
                work_type=item.work_type,
                description=item.description,
                task_performed=item.task_performed,
                hourly_rate=item.hourly_rate,
            ),
            created_by,
        )
        entry.line_number = line_number
        entry.timesheet = timesheet
        built.append(entry)
    return built


def get_timesheet(db: Session, timesheet_id: str) -> Timesheet:
    timesheet = db.get(Timesheet, timesheet_id)
    if timesheet is None:
        raise NotFoundError("Timesheet", timesheet_id)
    return timesheet


def create_timesheet(db: Session, data: TimesheetData, *, created_by: str) -> Timesheet:
    if data.date is None:
        raise ValidationError("date is required", field="date")

    timesheet = Timesheet(
        date=data.date,
        title=data.title,
        notes=data.notes,
        status=TimesheetStatus.DRAFT.value,
        created_by=created_by,
    )
    db.add(timesheet)
    try:
        _build_lines(db, timesheet, data.entries, created_by)
    except Exception:
        db.rollback()
        raise
    commit_or_fail(db, "create timesheet")
    db.refresh(timesheet)
    logger.info(
        "timesheet_created",
        timesheet_id=timesheet.id,
        date=timesheet.date.isoformat(),
        entries=len(data.entries),
        created_by=created_by,
    )
    return timesheet


def update_timesheet(
    db: Session,
    timesheet_id: str,
    *,
    updated_by: str,
    title: Any = None,
    notes: Any = None,
    entries: Optional[Sequence[TimesheetEntryData]] = None,
    **changes: Any,
) -> Timesheet:
    """Edit header fields and, while still DRAFT, replace the entry list.

    ``title``/``notes`` of None mean "leave unchanged"; pass an empty string
    to clear them.
    """

    if changes:
        raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(changes))}", fields=sorted(changes))

    timesheet = get_timesheet(db, timesheet_id)
    status = TimesheetStatus(timesheet.status)
    if status not in EDITABLE_TIMESHEET_STATES:
        raise InvalidStateError(
            f"Timesheet {timesheet_id} is {status.value} and can no longer be edited",
            current=status.value,
            id=timesheet_id,
        )
    if entries is not None and status is not TimesheetStatus.DRAFT:
        raise InvalidStateError(
            f"Entries of timesheet {timesheet_id} can only be replaced while it is DRAFT",
            current=status.value,
            id=timesheet_id,
        )

    if title is not None:
        timesheet.title = title or None
    if notes is not None:
        timesheet.notes = notes or None
    timesheet.updated_by = updated_by
    timesheet.updated_at = datetime.utcnow()

    if entries is not None:
        try:
            for old in list(timesheet.time_entries):
                db.delete(old)
            db.flush()
            db.expire(timesheet, ["time_entries"])
            _build_lines(db, timesheet, entries, updated_by)
        except Exception:
            db.rollback()
            raise

    commit_or_fail(db, "update timesheet")
    db.refresh(timesheet)
    logger.info(
        "timesheet_updated",
        timesheet_id=timesheet_id,
        replaced_entries=entries is not None,
        updated_by=updated_by,
    )
    return timesheet


def _transition(db: Session, timesheet_id: str, target: TimesheetStatus, values: Dict[Any, Any]) -> Timesheet:
    timesheet = get_timesheet(db, timesheet_id)
    ensure_timesheet_transition(timesheet.status, target, timesheet_id)
    previous = timesheet.status

    values = {Timesheet.status: target.value, Timesheet.updated_at: datetime.utcnow(), **values}
    updated = (
        db.query(Timesheet)
        .filter(Timesheet.id == timesheet_id, Timesheet.status == previous)
        .update(values, synchronize_session=False)
    )
    if not updated:
        db.rollback()
        current = get_timesheet(db, timesheet_id)
        db.refresh(current)
        raise InvalidStateError(
            f"Timesheet {timesheet_id} is {current.status} and cannot become {target.value}",
            current=current.status,
            target=target.value,
            id=timesheet_id,
        )
    return timesheet


def submit_timesheet(db: Session, timesheet_id: str, *, submitted_by: str) -> Timesheet:
    timesheet = _transition(
        db,
        timesheet_id,
        TimesheetStatus.SUBMITTED,
        {Timesheet.submitted_by: submitted_by, Timesheet.submitted_at: datetime.utcnow()},
    )
    commit_or_fail(db, "submit timesheet")
    db.refresh(timesheet)
    logger.info("timesheet_submitted", timesheet_id=timesheet_id, submitted_by=submitted_by)
    return timesheet


def approve_timesheet(db: Session, timesheet_id: str, *, approver_id: str) -> Timesheet:
    now = datetime.utcnow()
    timesheet = _transition(
        db,
        timesheet_id,
        TimesheetStatus.APPROVED,
        {Timesheet.approved_by: approver_id, Timesheet.approved_at: now},
    )
    # Rejected lines keep their decision.
    approved_entries = (
        db.query(TimeEntry)
        .filter(TimeEntry.timesheet_id == timesheet_id, TimeEntry.status == EntryStatus.PENDING.value)
        .update(
            {
                TimeEntry.status: EntryStatus.APPROVED.value,
                TimeEntry.approved_by: approver_id,
                TimeEntry.approved_at: now,
                TimeEntry.updated_by: approver_id,
            },
            synchronize_session=False,
        )
    )
    commit_or_fail(db, "approve timesheet")
    db.refresh(timesheet)
    db.expire(timesheet, ["time_entries"])
    logger.info(
        "timesheet_approved",
        timesheet_id=timesheet_id,
        approved_by=approver_id,
        approved_entries=approved_entries,
    )
    return timesheet


def delete_timesheet(db: Session, timesheet_id: str, *, deleted_by: str | None = None) -> None:
    timesheet = get_timesheet(db, timesheet_id)
    if timesheet.status != TimesheetStatus.DRAFT.value:
        raise InvalidStateError(
            f"Timesheet {timesheet_id} is {timesheet.status} and cannot be deleted",
            current=timesheet.status,
            id=timesheet_id,
        )
    for entry in list(timesheet.time_entries):
        db.delete(entry)
    db.delete(timesheet)
    commit_or_fail(db, "delete timesheet")
    logger.info("timesheet_deleted", timesheet_id=timesheet_id, deleted_by=deleted_by)


def list_timesheets(
    db: Session,
    *,
    status: str | TimesheetStatus | None = None,
    start: date | None = None,
    end: date | None = None,
    created_by: str | None = None,
) -> List[Timesheet]:
    query = db.query(Timesheet)
    if status:
        query = query.filter(Timesheet.status == TimesheetStatus(status).value)
    if start:
        query = query.filter(Timesheet.date >= start)
    if end:
        query = query.filter(Timesheet.date <= end)
    if created_by:
        query = query.filter(Timesheet.created_by == created_by)
    return query.order_by(Timesheet.date.desc(), Timesheet.created_at.desc()).all()


def build_document(timesheet: Timesheet) -> TimesheetDocument:
    lines = []
    for entry in timesheet.time_entries:
        employee = entry.employee
        project = entry.project
        lines.append(
            TimesheetLine(
                employee_id=entry.employee_id,
                employee_name=employee.full_name if employee else entry.employee_id,
                classification=employee.classification if employee else None,
                project_name=project.name if project else entry.project_id,
                project_number=project.project_number if project else None,
                hours_worked=float(entry.hours_worked),
                work_type=entry.work_type,
                task_performed=entry.task_performed,
                description=entry.description,
            )
        )
    return TimesheetDocument(
        id=timesheet.id,
        date=timesheet.date,
        status=timesheet.status,
        created_by=timesheet.created_by,
        title=timesheet.title,
        notes=timesheet.notes,
        lines=tuple(lines),
    )


def export_timesheet_pdf(db: Session, timesheet_id: str, *, generated_at: datetime | None = None) -> bytes:
    document = build_document(get_timesheet(db, timesheet_id))
    return render_timesheet_pdf(
        document,
        ranks=ClassificationRanks(settings.classification_ranks),
        geometry=PageGeometry(content_bottom=settings.pdf_content_bottom),
        heading=settings.pdf_heading,
        generated_at=generated_at or datetime.utcnow(),
    )
