from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from timekeeping.core.errors import InternalError
from timekeeping.core.logging import get_logger
from timekeeping.models import DailySignIn, Employee, Project, TimeEntry

logger = get_logger(__name__)


@dataclass(frozen=True)
class EntryRow:
    """One time entry flattened with the employee and project it refers to."""

    entry_id: str
    employee_id: str
    employee_name: str
    classification: Optional[str]
    project_id: str
    project_name: str
    project_number: Optional[str]
    date: date
    hours_worked: float
    work_type: str
    status: str
    hourly_rate: Optional[float] = None
    employee_rate: Optional[float] = None

    @property
    def effective_rate(self) -> Optional[float]:
        if self.hourly_rate is not None:
            return self.hourly_rate
        return self.employee_rate

    @property
    def cost(self) -> float:
        rate = self.effective_rate
        return self.hours_worked * rate if rate is not None else 0.0


@dataclass(frozen=True)
class SignInRow:
    employee_id: str
    date: date
    sign_in_time: datetime
    sign_out_time: Optional[datetime]


@dataclass(frozen=True)
class ReportSnapshot:
    start: date
    end: date
    entries: List[EntryRow] = field(default_factory=list)
    sign_ins: List[SignInRow] = field(default_factory=list)


def _as_float(value) -> Optional[float]:
    return float(value) if value is not None else None


def _entry_rows(rows: Iterable) -> List[EntryRow]:
    return [
        EntryRow(
            entry_id=row.id,
            employee_id=row.employee_id,
            employee_name=f"{row.first_name} {row.last_name}".strip(),
            classification=row.classification,
            project_id=row.project_id,
            project_name=row.project_name,
            project_number=row.project_number,
            date=row.date,
            hours_worked=float(row.hours_worked),
            work_type=row.work_type,
            status=row.status,
            hourly_rate=_as_float(row.hourly_rate),
            employee_rate=_as_float(row.employee_rate),
        )
        for row in rows
    ]


def load_snapshot(
    db: Session,
    start: date,
    end: date,
    *,
    employee_id: str | None = None,
    project_id: str | None = None,
    statuses: Optional[Iterable[str]] = None,
    include_sign_ins: bool = False,
) -> ReportSnapshot:
    """Read every row a report needs inside the session's single transaction.

    Builders compute all sub-aggregates from the returned snapshot, so one
    report never mixes data from before and after a concurrent write.
    """

    status_list = [str(getattr(status, "value", status)) for status in statuses or []]
    try:
        query = (
            db.query(
                TimeEntry.id,
                TimeEntry.employee_id,
                TimeEntry.project_id,
                TimeEntry.date,
                TimeEntry.hours_worked,
                TimeEntry.work_type,
                TimeEntry.status,
                TimeEntry.hourly_rate,
                Employee.first_name,
                Employee.last_name,
                Employee.classification,
                Employee.hourly_rate.label("employee_rate"),
                Project.name.label("project_name"),
                Project.project_number,
            )
            .join(Employee, Employee.id == TimeEntry.employee_id)
            .join(Project, Project.id == TimeEntry.project_id)
            .filter(TimeEntry.date >= start, TimeEntry.date <= end)
        )
        if employee_id:
            query = query.filter(TimeEntry.employee_id == employee_id)
        if project_id:
            query = query.filter(TimeEntry.project_id == project_id)
        if status_list:
            query = query.filter(TimeEntry.status.in_(status_list))
        entries = _entry_rows(query.order_by(TimeEntry.date, TimeEntry.created_at, TimeEntry.id).all())

        sign_ins: List[SignInRow] = []
        if include_sign_ins:
            sign_in_query = db.query(
                DailySignIn.employee_id,
                DailySignIn.date,
                DailySignIn.sign_in_time,
                DailySignIn.sign_out_time,
            ).filter(DailySignIn.date >= start, DailySignIn.date <= end)
            if employee_id:
                sign_in_query = sign_in_query.filter(DailySignIn.employee_id == employee_id)
            sign_ins = [
                SignInRow(
                    employee_id=row.employee_id,
                    date=row.date,
                    sign_in_time=row.sign_in_time,
                    sign_out_time=row.sign_out_time,
                )
                for row in sign_in_query.order_by(DailySignIn.sign_in_time).all()
            ]
    except SQLAlchemyError as exc:
        logger.error("report_snapshot_failed", start=start.isoformat(), end=end.isoformat(), error=str(exc))
        raise InternalError("Failed to load report data", start=start.isoformat(), end=end.isoformat()) from exc

    return ReportSnapshot(start=start, end=end, entries=entries, sign_ins=sign_ins)
