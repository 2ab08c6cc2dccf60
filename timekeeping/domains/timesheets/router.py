from __future__ import annotations

import datetime as dt
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from timekeeping.api.deps import get_current_user_id
from timekeeping.db.session import get_session
from timekeeping.domains.time_entries.router import TimeEntryOut
from timekeeping.domains.timesheets import service

router = APIRouter(prefix="/timesheets", tags=["timesheets"])


class TimesheetEntryIn(BaseModel):
    employee_id: str
    project_id: str
    hours_worked: float
    work_type: Literal["Regular", "Overtime", "DoubleTime"] = "Regular"
    description: str | None = None
    task_performed: str | None = None
    hourly_rate: float | None = None

    def to_data(self) -> service.TimesheetEntryData:
        return service.TimesheetEntryData(**self.model_dump())


class TimesheetCreate(BaseModel):
    date: dt.date
    title: str | None = None
    notes: str | None = None
    entries: list[TimesheetEntryIn] = []


class TimesheetUpdate(BaseModel):
    title: str | None = None
    notes: str | None = None
    entries: list[TimesheetEntryIn] | None = None


class TimesheetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    date: dt.date
    title: str | None = None
    notes: str | None = None
    status: str
    created_by: str
    updated_by: str | None = None
    submitted_by: str | None = None
    submitted_at: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    time_entries: list[TimeEntryOut] = []


def _clearable(changes: dict, key: str) -> str | None:
    if key in changes and changes[key] is None:
        return ""
    return changes.get(key)


@router.post("", response_model=TimesheetOut, status_code=201)
def create_timesheet(
    payload: TimesheetCreate,
    db: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
) -> TimesheetOut:
    data = service.TimesheetData(
        date=payload.date,
        title=payload.title,
        notes=payload.notes,
        entries=[item.to_data() for item in payload.entries],
    )
    return TimesheetOut.model_validate(service.create_timesheet(db, data, created_by=user_id))


@router.get("", response_model=list[TimesheetOut])
def list_timesheets(
    status: Literal["DRAFT", "SUBMITTED", "APPROVED"] | None = None,
    start_date: dt.date | None = None,
    end_date: dt.date | None = None,
    created_by: str | None = None,
    db: Session = Depends(get_session),
) -> list[TimesheetOut]:
    timesheets = service.list_timesheets(db, status=status, start=start_date, end=end_date, created_by=created_by)
    return [TimesheetOut.model_validate(timesheet) for timesheet in timesheets]


@router.get("/{timesheet_id}", response_model=TimesheetOut)
def get_timesheet(timesheet_id: str, db: Session = Depends(get_session)) -> TimesheetOut:
    return TimesheetOut.model_validate(service.get_timesheet(db, timesheet_id))


@router.patch("/{timesheet_id}", response_model=TimesheetOut)
def update_timesheet(
    timesheet_id: str,
    payload: TimesheetUpdate,
    db: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
) -> TimesheetOut:
    changes = payload.model_dump(exclude_unset=True, exclude={"entries"})
    entries = [item.to_data() for item in payload.entries] if payload.entries is not None else None
    timesheet = service.update_timesheet(
        db,
        timesheet_id,
        updated_by=user_id,
        # An explicit null clears the field; an omitted one leaves it alone.
        title=_clearable(changes, "title"),
        notes=_clearable(changes, "notes"),
        entries=entries,
    )
    return TimesheetOut.model_validate(timesheet)


@router.post("/{timesheet_id}/submit", response_model=TimesheetOut)
def submit_timesheet(
    timesheet_id: str,
    db: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
) -> TimesheetOut:
    return TimesheetOut.model_validate(service.submit_timesheet(db, timesheet_id, submitted_by=user_id))


@router.post("/{timesheet_id}/approve", response_model=TimesheetOut)
def approve_timesheet(
    timesheet_id: str,
    db: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
) -> TimesheetOut:
    return TimesheetOut.model_validate(service.approve_timesheet(db, timesheet_id, approver_id=user_id))


@router.delete("/{timesheet_id}", status_code=204)
def delete_timesheet(
    timesheet_id: str,
    db: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
) -> Response:
    service.delete_timesheet(db, timesheet_id, deleted_by=user_id)
    return Response(status_code=204)


@router.get("/{timesheet_id}/pdf")
def export_timesheet_pdf(timesheet_id: str, db: Session = Depends(get_session)) -> Response:
    content = service.export_timesheet_pdf(db, timesheet_id)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="timesheet-{timesheet_id}.pdf"'},
    )
