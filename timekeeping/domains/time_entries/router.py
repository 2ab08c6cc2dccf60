from __future__ import annotations

import datetime as dt
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from timekeeping.api.deps import get_current_user_id
from timekeeping.db.session import get_session
from timekeeping.domains.time_entries import service

router = APIRouter(prefix="/time-entries", tags=["time-entries"])

WorkTypeName = Literal["Regular", "Overtime", "DoubleTime"]
StatusName = Literal["PENDING", "APPROVED", "REJECTED"]


class TimeEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    employee_id: str
    project_id: str
    timesheet_id: str | None = None
    line_number: int | None = None
    sign_in_id: str | None = None
    date: dt.date
    hours_worked: float
    work_type: str
    description: str | None = None
    task_performed: str | None = None
    hourly_rate: float | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    status: str
    rejection_reason: str | None = None
    created_by: str
    updated_by: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TimeEntryCreate(BaseModel):
    employee_id: str
    project_id: str
    date: dt.date
    hours_worked: float
    work_type: WorkTypeName = "Regular"
    description: str | None = None
    task_performed: str | None = None
    hourly_rate: float | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None

    def to_data(self) -> service.TimeEntryData:
        return service.TimeEntryData(**self.model_dump())


class BulkTimeEntryCreate(BaseModel):
    entries: list[TimeEntryCreate] = Field(..., min_length=1)


class TimeEntryUpdate(BaseModel):
    project_id: str | None = None
    date: dt.date | None = None
    hours_worked: float | None = None
    work_type: WorkTypeName | None = None
    description: str | None = None
    task_performed: str | None = None
    hourly_rate: float | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None


class RejectRequest(BaseModel):
    reason: str


class FromSignInRequest(BaseModel):
    sign_in_id: str
    project_id: str


@router.post("", response_model=TimeEntryOut, status_code=201)
def create_time_entry(
    payload: TimeEntryCreate,
    db: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
) -> TimeEntryOut:
    entry = service.create_entry(db, payload.to_data(), created_by=user_id)
    return TimeEntryOut.model_validate(entry)


@router.post("/bulk", response_model=list[TimeEntryOut], status_code=201)
def bulk_create_time_entries(
    payload: BulkTimeEntryCreate,
    db: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
) -> list[TimeEntryOut]:
    entries = service.bulk_create_entries(db, [item.to_data() for item in payload.entries], created_by=user_id)
    return [TimeEntryOut.model_validate(entry) for entry in entries]


@router.post("/from-sign-in", response_model=TimeEntryOut, status_code=201)
def create_from_sign_in(
    payload: FromSignInRequest,
    db: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
) -> TimeEntryOut:
    entry = service.auto_create_from_sign_in(db, payload.sign_in_id, payload.project_id, created_by=user_id)
    return TimeEntryOut.model_validate(entry)


@router.get("", response_model=list[TimeEntryOut])
def list_by_date(
    on_date: dt.date | None = None,
    employee_id: str | None = None,
    project_id: str | None = None,
    status: StatusName | None = None,
    db: Session = Depends(get_session),
) -> list[TimeEntryOut]:
    entries = service.list_by_date(
        db,
        on_date or dt.date.today(),
        employee_id=employee_id,
        project_id=project_id,
        status=status,
    )
    return [TimeEntryOut.model_validate(entry) for entry in entries]


@router.get("/unapproved", response_model=list[TimeEntryOut])
def list_unapproved(db: Session = Depends(get_session)) -> list[TimeEntryOut]:
    return [TimeEntryOut.model_validate(entry) for entry in service.list_unapproved(db)]


@router.get("/employees/{employee_id}", response_model=list[TimeEntryOut])
def list_by_employee(
    employee_id: str,
    start_date: dt.date,
    end_date: dt.date,
    db: Session = Depends(get_session),
) -> list[TimeEntryOut]:
    entries = service.list_by_employee(db, employee_id, start_date, end_date)
    return [TimeEntryOut.model_validate(entry) for entry in entries]


@router.get("/projects/{project_id}", response_model=list[TimeEntryOut])
def list_by_project(
    project_id: str,
    start_date: dt.date,
    end_date: dt.date,
    db: Session = Depends(get_session),
) -> list[TimeEntryOut]:
    entries = service.list_by_project(db, project_id, start_date, end_date)
    return [TimeEntryOut.model_validate(entry) for entry in entries]


@router.get("/{entry_id}", response_model=TimeEntryOut)
def get_time_entry(entry_id: str, db: Session = Depends(get_session)) -> TimeEntryOut:
    return TimeEntryOut.model_validate(service.get_entry(db, entry_id))


@router.patch("/{entry_id}", response_model=TimeEntryOut)
def update_time_entry(
    entry_id: str,
    payload: TimeEntryUpdate,
    db: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
) -> TimeEntryOut:
    entry = service.update_entry(db, entry_id, payload.model_dump(exclude_unset=True), updated_by=user_id)
    return TimeEntryOut.model_validate(entry)


@router.delete("/{entry_id}", status_code=204)
def delete_time_entry(
    entry_id: str,
    db: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
) -> Response:
    service.delete_entry(db, entry_id, deleted_by=user_id)
    return Response(status_code=204)


@router.post("/{entry_id}/approve", response_model=TimeEntryOut)
def approve_time_entry(
    entry_id: str,
    db: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
) -> TimeEntryOut:
    return TimeEntryOut.model_validate(service.approve_entry(db, entry_id, approver_id=user_id))


@router.post("/{entry_id}/reject", response_model=TimeEntryOut)
def reject_time_entry(
    entry_id: str,
    payload: RejectRequest,
    db: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
) -> TimeEntryOut:
    entry = service.reject_entry(db, entry_id, approver_id=user_id, reason=payload.reason)
    return TimeEntryOut.model_validate(entry)
