from __future__ import annotations

import datetime as dt
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from timekeeping.api.deps import get_current_user_id
from timekeeping.db.session import get_session, naive_utc
from timekeeping.domains.sign_ins import service

router = APIRouter(prefix="/sign-ins", tags=["sign-ins"])


class SignInOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    employee_id: str
    date: dt.date
    sign_in_time: datetime
    sign_out_time: datetime | None = None
    location: str | None = None
    project_id: str | None = None
    notes: str | None = None
    signed_in_by: str | None = None
    signed_out_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SignInCreate(BaseModel):
    employee_id: str
    date: dt.date | None = None
    sign_in_time: datetime | None = None
    location: str | None = None
    project_id: str | None = None
    notes: str | None = None


class BulkSignInCreate(BaseModel):
    employee_ids: list[str] = Field(..., min_length=1)
    date: dt.date | None = None
    sign_in_time: datetime | None = None
    location: str | None = None
    project_id: str | None = None
    notes: str | None = None


class BulkSignInOut(BaseModel):
    signed_in: list[SignInOut]
    already_signed_in: list[str]


class SignOutRequest(BaseModel):
    sign_out_time: datetime | None = None


class SignInStatus(BaseModel):
    employee_id: str
    date: dt.date
    signed_in: bool


def _resolve_times(on_date: dt.date | None, sign_in_time: datetime | None) -> tuple[dt.date, datetime]:
    sign_in_time = naive_utc(sign_in_time) or datetime.utcnow()
    return on_date or sign_in_time.date(), sign_in_time


@router.post("/bulk", response_model=BulkSignInOut, status_code=201)
def bulk_sign_in(
    payload: BulkSignInCreate,
    db: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
) -> BulkSignInOut:
    on_date, sign_in_time = _resolve_times(payload.date, payload.sign_in_time)
    result = service.bulk_sign_in(
        db,
        payload.employee_ids,
        on_date=on_date,
        sign_in_time=sign_in_time,
        signed_in_by=user_id,
        location=payload.location,
        project_id=payload.project_id,
        notes=payload.notes,
    )
    return BulkSignInOut(
        signed_in=[SignInOut.model_validate(record) for record in result.signed_in],
        already_signed_in=result.already_signed_in,
    )


@router.post("", response_model=SignInOut, status_code=201)
def sign_in(
    payload: SignInCreate,
    db: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
) -> SignInOut:
    on_date, sign_in_time = _resolve_times(payload.date, payload.sign_in_time)
    record = service.sign_in(
        db,
        payload.employee_id,
        on_date=on_date,
        sign_in_time=sign_in_time,
        signed_in_by=user_id,
        location=payload.location,
        project_id=payload.project_id,
        notes=payload.notes,
    )
    return SignInOut.model_validate(record)


@router.post("/{sign_in_id}/sign-out", response_model=SignInOut)
def sign_out(
    sign_in_id: str,
    payload: SignOutRequest | None = None,
    db: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
) -> SignInOut:
    sign_out_time = (payload.sign_out_time if payload else None) or datetime.utcnow()
    record = service.sign_out(db, sign_in_id, sign_out_time=sign_out_time, signed_out_by=user_id)
    return SignInOut.model_validate(record)


@router.get("", response_model=list[SignInOut])
def list_for_date(
    on_date: dt.date | None = None,
    employee_id: str | None = None,
    project_id: str | None = None,
    db: Session = Depends(get_session),
) -> list[SignInOut]:
    records = service.list_for_date(
        db, on_date or dt.date.today(), employee_id=employee_id, project_id=project_id
    )
    return [SignInOut.model_validate(record) for record in records]


@router.get("/active", response_model=list[SignInOut])
def list_active(db: Session = Depends(get_session)) -> list[SignInOut]:
    return [SignInOut.model_validate(record) for record in service.list_active(db)]


@router.get("/employees/{employee_id}", response_model=list[SignInOut])
def employee_history(
    employee_id: str,
    start_date: dt.date,
    end_date: dt.date,
    db: Session = Depends(get_session),
) -> list[SignInOut]:
    records = service.history(db, employee_id, start_date, end_date)
    return [SignInOut.model_validate(record) for record in records]


@router.get("/employees/{employee_id}/status", response_model=SignInStatus)
def employee_status(
    employee_id: str,
    on_date: dt.date | None = None,
    db: Session = Depends(get_session),
) -> SignInStatus:
    on_date = on_date or dt.date.today()
    return SignInStatus(
        employee_id=employee_id,
        date=on_date,
        signed_in=service.is_signed_in(db, employee_id, on_date),
    )
