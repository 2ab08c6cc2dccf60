from datetime import date, datetime, timedelta, timezone

import pytest

from conftest import WORK_DAY, at
from timekeeping.core.errors import InvalidStateError, NotFoundError, ValidationError
from timekeeping.domains.sign_ins import service as sign_ins
from timekeeping.domains.time_entries import service
from timekeeping.domains.time_entries.service import TimeEntryData
from timekeeping.models import TimeEntry


def data(crew, hours=8, **overrides):
    values = dict(employee_id=crew.foreman, project_id=crew.substation, date=WORK_DAY, hours_worked=hours)
    values.update(overrides)
    return TimeEntryData(**values)


def test_create_entry_starts_pending(db, crew):
    entry = service.create_entry(db, data(crew, task_performed="Pull feeders"), created_by="mgr-1")

    assert entry.status == "PENDING"
    assert entry.work_type == "Regular"
    assert float(entry.hours_worked) == 8
    assert entry.created_by == "mgr-1"
    assert entry.approved_by is None


@pytest.mark.parametrize("hours", [0, -1, 24.01, 100, "abc"])
def test_create_entry_rejects_out_of_range_hours(db, crew, hours):
    with pytest.raises(ValidationError):
        service.create_entry(db, data(crew, hours=hours), created_by="mgr-1")

    assert db.query(TimeEntry).count() == 0


def test_create_entry_accepts_full_day_boundary(db, crew):
    entry = service.create_entry(db, data(crew, hours=24), created_by="mgr-1")

    assert float(entry.hours_worked) == 24


def test_create_entry_rejects_unknown_work_type(db, crew):
    with pytest.raises(ValidationError):
        service.create_entry(db, data(crew, work_type="TripleTime"), created_by="mgr-1")


@pytest.mark.parametrize("rate", ["abc", -5, "NaN"])
def test_create_entry_rejects_bad_rates(db, crew, rate):
    with pytest.raises(ValidationError) as excinfo:
        service.create_entry(db, data(crew, hourly_rate=rate), created_by="mgr-1")

    assert excinfo.value.details["field"] == "hourly_rate"
    assert db.query(TimeEntry).count() == 0


def test_update_rejects_non_numeric_rate(db, crew):
    entry = service.create_entry(db, data(crew), created_by="mgr-1")

    with pytest.raises(ValidationError):
        service.update_entry(db, entry.id, {"hourly_rate": "twelve"}, updated_by="mgr-2")


def test_aware_start_and_end_times_are_stored_as_utc(db, crew):
    eastern = timezone(timedelta(hours=-5))
    entry = service.create_entry(
        db,
        data(crew, start_time=datetime(2024, 1, 10, 7, tzinfo=eastern), end_time=datetime(2024, 1, 10, 15, tzinfo=eastern)),
        created_by="mgr-1",
    )

    assert entry.start_time == at(12)
    assert entry.end_time == at(20)

    updated = service.update_entry(
        db, entry.id, {"end_time": datetime(2024, 1, 10, 21, tzinfo=timezone.utc)}, updated_by="mgr-2"
    )
    assert updated.end_time == at(21)


def test_create_entry_requires_known_employee_and_project(db, crew):
    with pytest.raises(NotFoundError):
        service.create_entry(db, data(crew, employee_id="ghost"), created_by="mgr-1")
    with pytest.raises(NotFoundError):
        service.create_entry(db, data(crew, project_id="nowhere"), created_by="mgr-1")


def test_bulk_create_is_all_or_nothing(db, crew):
    batch = [data(crew), data(crew, employee_id=crew.apprentice, hours=30)]

    with pytest.raises(ValidationError) as excinfo:
        service.bulk_create_entries(db, batch, created_by="mgr-1")

    assert excinfo.value.details["employee_id"] == crew.apprentice
    assert db.query(TimeEntry).count() == 0

    created = service.bulk_create_entries(db, [data(crew), data(crew, employee_id=crew.apprentice)], created_by="mgr-1")
    assert len(created) == 2


def test_approve_twice_fails_and_keeps_first_approval(db, crew):
    entry = service.create_entry(db, data(crew), created_by="mgr-1")
    service.approve_entry(db, entry.id, approver_id="boss-1")

    with pytest.raises(InvalidStateError) as excinfo:
        service.approve_entry(db, entry.id, approver_id="boss-2")

    assert excinfo.value.current == "APPROVED"
    db.refresh(entry)
    assert entry.status == "APPROVED"
    assert entry.approved_by == "boss-1"
    assert entry.approved_at is not None


def test_stale_approval_loses_to_committed_decision(session_factory, crew):
    first = session_factory(expire_on_commit=False)
    second = session_factory()
    entry = service.create_entry(first, data(crew), created_by="mgr-1")
    stale = service.get_entry(first, entry.id)
    first.commit()

    service.reject_entry(second, entry.id, approver_id="boss-2", reason="Wrong project")
    second.close()

    assert stale.status == "PENDING"
    with pytest.raises(InvalidStateError) as excinfo:
        service.approve_entry(first, entry.id, approver_id="boss-1")

    assert excinfo.value.current == "REJECTED"
    first.close()


def test_reject_requires_reason(db, crew):
    entry = service.create_entry(db, data(crew), created_by="mgr-1")

    with pytest.raises(ValidationError):
        service.reject_entry(db, entry.id, approver_id="boss-1", reason="   ")

    rejected = service.reject_entry(db, entry.id, approver_id="boss-1", reason=" Duplicate entry ")
    assert rejected.status == "REJECTED"
    assert rejected.rejection_reason == "Duplicate entry"
    assert rejected.approved_by == "boss-1"


def test_rejected_entry_cannot_be_approved(db, crew):
    entry = service.create_entry(db, data(crew), created_by="mgr-1")
    service.reject_entry(db, entry.id, approver_id="boss-1", reason="Duplicate")

    with pytest.raises(InvalidStateError):
        service.approve_entry(db, entry.id, approver_id="boss-1")


def test_decisions_on_unknown_entry(db, crew):
    with pytest.raises(NotFoundError):
        service.approve_entry(db, "missing", approver_id="boss-1")


def test_update_pending_entry(db, crew):
    entry = service.create_entry(db, data(crew), created_by="mgr-1")

    updated = service.update_entry(
        db,
        entry.id,
        {"hours_worked": 6.5, "work_type": "Overtime", "project_id": crew.harbor},
        updated_by="mgr-2",
    )

    assert float(updated.hours_worked) == 6.5
    assert updated.work_type == "Overtime"
    assert updated.project_id == crew.harbor
    assert updated.updated_by == "mgr-2"


def test_update_rejects_unknown_fields_and_bad_hours(db, crew):
    entry = service.create_entry(db, data(crew), created_by="mgr-1")

    with pytest.raises(ValidationError):
        service.update_entry(db, entry.id, {"status": "APPROVED"}, updated_by="mgr-2")
    with pytest.raises(ValidationError):
        service.update_entry(db, entry.id, {"hours_worked": 0}, updated_by="mgr-2")


def test_approved_entry_is_no_longer_editable(db, crew):
    entry = service.create_entry(db, data(crew), created_by="mgr-1")
    service.approve_entry(db, entry.id, approver_id="boss-1")

    with pytest.raises(InvalidStateError):
        service.update_entry(db, entry.id, {"hours_worked": 4}, updated_by="mgr-2")


def test_delete_entry(db, crew):
    entry = service.create_entry(db, data(crew), created_by="mgr-1")

    service.delete_entry(db, entry.id, deleted_by="mgr-1")

    assert db.query(TimeEntry).count() == 0
    with pytest.raises(NotFoundError):
        service.delete_entry(db, entry.id)


def test_listing_queries(db, crew):
    next_day = date(2024, 1, 11)
    first = service.create_entry(db, data(crew), created_by="mgr-1")
    service.create_entry(db, data(crew, hours=2, work_type="Overtime", project_id=crew.harbor), created_by="mgr-1")
    service.create_entry(db, data(crew, employee_id=crew.apprentice, date=next_day), created_by="mgr-1")
    service.approve_entry(db, first.id, approver_id="boss-1")

    assert len(service.list_by_date(db, WORK_DAY)) == 2
    assert [e.id for e in service.list_by_date(db, WORK_DAY, status="APPROVED")] == [first.id]
    assert len(service.list_by_date(db, WORK_DAY, project_id=crew.harbor)) == 1
    assert len(service.list_by_employee(db, crew.foreman, WORK_DAY, next_day)) == 2
    assert len(service.list_by_project(db, crew.substation, WORK_DAY, next_day)) == 2
    assert [e.date for e in service.list_unapproved(db)] == [next_day, WORK_DAY]
    assert service.day_total(db, crew.foreman, WORK_DAY) == 10
    assert service.day_total(db, crew.journeyman, WORK_DAY) == 0


def test_auto_create_from_closed_sign_in(db, crew):
    record = sign_ins.sign_in(db, crew.foreman, on_date=WORK_DAY, sign_in_time=at(7))
    sign_ins.sign_out(db, record.id, sign_out_time=at(15, 30))

    entry = service.auto_create_from_sign_in(db, record.id, crew.substation, created_by="mgr-1")

    assert float(entry.hours_worked) == 8.5
    assert entry.status == "PENDING"
    assert entry.work_type == "Regular"
    assert entry.sign_in_id == record.id
    assert float(entry.hourly_rate) == 45
    assert entry.start_time == at(7)
    assert entry.end_time == at(15, 30)


def test_auto_create_requires_sign_out(db, crew):
    record = sign_ins.sign_in(db, crew.foreman, on_date=WORK_DAY, sign_in_time=at(7))

    with pytest.raises(InvalidStateError):
        service.auto_create_from_sign_in(db, record.id, crew.substation, created_by="mgr-1")

    assert db.query(TimeEntry).count() == 0


def test_auto_create_unknown_sign_in(db, crew):
    with pytest.raises(NotFoundError):
        service.auto_create_from_sign_in(db, "missing", crew.substation, created_by="mgr-1")


def test_hours_between_rounds_to_hundredths():
    assert service.hours_between(at(7), at(15, 20)) == 8.33
