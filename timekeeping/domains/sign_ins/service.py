from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from timekeeping.core.errors import AlreadySignedOutError, ConflictError, NotFoundError, ValidationError
from timekeeping.core.logging import get_logger
from timekeeping.db.session import commit_or_fail, naive_utc
from timekeeping.domains.directory import get_employee, get_project, missing_employee_ids
from timekeeping.models import DailySignIn

logger = get_logger(__name__)


@dataclass
class BulkSignInResult:
    signed_in: List[DailySignIn] = field(default_factory=list)
    already_signed_in: List[str] = field(default_factory=list)


def _find_active(db: Session, employee_id: str, on_date: date) -> Optional[DailySignIn]:
    return (
        db.query(DailySignIn)
        .filter(
            DailySignIn.employee_id == employee_id,
            DailySignIn.date == on_date,
            DailySignIn.sign_out_time.is_(None),
        )
        .first()
    )


def _sign_in_one(
    db: Session,
    employee_id: str,
    *,
    on_date: date,
    sign_in_time: datetime,
    signed_in_by: str | None,
    location: str | None,
    project_id: str | None,
    notes: str | None,
) -> Optional[DailySignIn]:
    """Check-then-insert for one employee inside its own SAVEPOINT.

    Returns None when the employee already has an active sign-in, whether the
    check saw it or a concurrent insert tripped the partial unique index.
    """

    savepoint = db.begin_nested()
    try:
        if _find_active(db, employee_id, on_date) is not None:
            savepoint.rollback()
            return None
        record = DailySignIn(
            employee_id=employee_id,
            date=on_date,
            sign_in_time=sign_in_time,
            location=location,
            project_id=project_id,
            notes=notes,
            signed_in_by=signed_in_by,
        )
        db.add(record)
        db.flush()
    except IntegrityError:
        savepoint.rollback()
        logger.info("sign_in_race_detected", employee_id=employee_id, date=on_date.isoformat())
        return None
    savepoint.commit()
    return record


def bulk_sign_in(
    db: Session,
    employee_ids: Iterable[str],
    *,
    on_date: date,
    sign_in_time: datetime,
    signed_in_by: str | None = None,
    location: str | None = None,
    project_id: str | None = None,
    notes: str | None = None,
) -> BulkSignInResult:
    sign_in_time = naive_utc(sign_in_time)
    requested = [employee_id for employee_id in dict.fromkeys(employee_ids) if employee_id]
    if not requested:
        raise ValidationError("At least one employee id is required", field="employee_ids")

    missing = missing_employee_ids(db, requested)
    if missing:
        raise NotFoundError("Employee", ", ".join(missing))
    if project_id:
        get_project(db, project_id)

    result = BulkSignInResult()
    for employee_id in requested:
        record = _sign_in_one(
            db,
            employee_id,
            on_date=on_date,
            sign_in_time=sign_in_time,
            signed_in_by=signed_in_by,
            location=location,
            project_id=project_id,
            notes=notes,
        )
        if record is None:
            result.already_signed_in.append(employee_id)
        else:
            result.signed_in.append(record)

    commit_or_fail(db, "record sign-ins")
    for record in result.signed_in:
        db.refresh(record)

    logger.info(
        "bulk_sign_in_complete",
        date=on_date.isoformat(),
        signed_in=len(result.signed_in),
        already_signed_in=result.already_signed_in,
        signed_in_by=signed_in_by,
    )
    return result


def sign_in(
    db: Session,
    employee_id: str,
    *,
    on_date: date,
    sign_in_time: datetime,
    signed_in_by: str | None = None,
    location: str | None = None,
    project_id: str | None = None,
    notes: str | None = None,
) -> DailySignIn:
    result = bulk_sign_in(
        db,
        [employee_id],
        on_date=on_date,
        sign_in_time=sign_in_time,
        signed_in_by=signed_in_by,
        location=location,
        project_id=project_id,
        notes=notes,
    )
    if result.already_signed_in:
        raise ConflictError(
            f"Employee {employee_id} is already signed in and has not signed out yet",
            employee_id=employee_id,
            date=on_date.isoformat(),
        )
    return result.signed_in[0]


def sign_out(
    db: Session,
    sign_in_id: str,
    *,
    sign_out_time: datetime,
    signed_out_by: str | None = None,
) -> DailySignIn:
    sign_out_time = naive_utc(sign_out_time)
    record = db.get(DailySignIn, sign_in_id)
    if record is None:
        raise NotFoundError("Sign-in", sign_in_id)
    if record.sign_out_time is not None:
        raise AlreadySignedOutError(f"Sign-in {sign_in_id} is already signed out", current="SIGNED_OUT", id=sign_in_id)
    if sign_out_time < record.sign_in_time:
        raise ValidationError(
            "Sign-out time cannot be earlier than sign-in time",
            field="sign_out_time",
            sign_in_time=record.sign_in_time.isoformat(),
        )

    updated = (
        db.query(DailySignIn)
        .filter(DailySignIn.id == sign_in_id, DailySignIn.sign_out_time.is_(None))
        .update(
            {
                DailySignIn.sign_out_time: sign_out_time,
                DailySignIn.signed_out_by: signed_out_by,
                DailySignIn.updated_at: datetime.utcnow(),
            },
            synchronize_session=False,
        )
    )
    if not updated:
        db.rollback()
        raise AlreadySignedOutError(f"Sign-in {sign_in_id} is already signed out", current="SIGNED_OUT", id=sign_in_id)

    commit_or_fail(db, "record sign-out")
    db.refresh(record)
    logger.info(
        "sign_out_complete",
        sign_in_id=sign_in_id,
        employee_id=record.employee_id,
        signed_out_by=signed_out_by,
    )
    return record


def list_for_date(
    db: Session,
    on_date: date,
    *,
    employee_id: str | None = None,
    project_id: str | None = None,
) -> List[DailySignIn]:
    query = db.query(DailySignIn).filter(DailySignIn.date == on_date)
    if employee_id:
        query = query.filter(DailySignIn.employee_id == employee_id)
    if project_id:
        query = query.filter(DailySignIn.project_id == project_id)
    return query.order_by(DailySignIn.sign_in_time.desc(), DailySignIn.id).all()


def list_active(db: Session) -> List[DailySignIn]:
    """Everyone currently on site, across all dates."""

    return (
        db.query(DailySignIn)
        .filter(DailySignIn.sign_out_time.is_(None))
        .order_by(DailySignIn.sign_in_time.desc(), DailySignIn.id)
        .all()
    )


def history(db: Session, employee_id: str, start: date, end: date) -> List[DailySignIn]:
    get_employee(db, employee_id)
    return (
        db.query(DailySignIn)
        .filter(
            DailySignIn.employee_id == employee_id,
            DailySignIn.date >= start,
            DailySignIn.date <= end,
        )
        .order_by(DailySignIn.date.desc(), DailySignIn.sign_in_time.desc())
        .all()
    )


def is_signed_in(db: Session, employee_id: str, on_date: date) -> bool:
    return _find_active(db, employee_id, on_date) is not None
