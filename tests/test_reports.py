from datetime import date

import pytest
from sqlalchemy.exc import OperationalError

from conftest import WORK_DAY, at
from timekeeping.core.errors import InternalError, NotFoundError, ValidationError
from timekeeping.domains.time_entries import service as time_entries
from timekeeping.domains.time_entries.service import TimeEntryData
from timekeeping_reports.data import EntryRow, ReportSnapshot, SignInRow, load_snapshot
from timekeeping_reports.exporter import render_csv, report_rows, report_to_dict
from timekeeping_reports.reports import PayrollReportBuilder, ReportRequest, build_report, week_bounds

NAMES = {
    "emp-app": ("Ada Apprentice", "Apprentice", 25.0),
    "emp-for": ("Finn Foreman", "Foreman", 45.0),
    "emp-sup": ("Sam Super", "Supervisor", None),
}
PROJECTS = {"prj-sub": ("Main St Substation", "P-100"), "prj-har": ("Harbor Lighting", "P-200")}


def row(employee_id, hours, work_type="Regular", project_id="prj-sub", day=WORK_DAY, rate=None, status="APPROVED"):
    name, classification, employee_rate = NAMES[employee_id]
    project_name, project_number = PROJECTS[project_id]
    return EntryRow(
        entry_id=f"{employee_id}-{project_id}-{day}-{hours}-{work_type}",
        employee_id=employee_id,
        employee_name=name,
        classification=classification,
        project_id=project_id,
        project_name=project_name,
        project_number=project_number,
        date=day,
        hours_worked=hours,
        work_type=work_type,
        status=status,
        hourly_rate=rate,
        employee_rate=employee_rate,
    )


def snapshot(entries, sign_ins=(), start=WORK_DAY, end=WORK_DAY):
    return ReportSnapshot(start=start, end=end, entries=list(entries), sign_ins=list(sign_ins))


@pytest.fixture
def builder():
    return PayrollReportBuilder()


def test_daily_report_buckets_hours_per_employee(builder):
    report = builder.daily(
        snapshot(
            [
                row("emp-app", 6),
                row("emp-for", 8),
                row("emp-for", 3, "Overtime", project_id="prj-har"),
                row("emp-for", 2, "DoubleTime"),
            ]
        ),
        WORK_DAY,
    )

    assert [e.employee_id for e in report.employees] == ["emp-for", "emp-app"]
    foreman = report.employees[0]
    assert (foreman.total_hours, foreman.regular_hours, foreman.overtime_hours) == (13, 8, 7)
    assert {p.project_id: p.hours for p in foreman.projects} == {"prj-sub": 10, "prj-har": 3}
    assert report.grand_total_hours == 19
    assert report.regular_hours == 14
    assert report.overtime_hours == 7


def test_daily_totals_equal_sum_of_rows(builder):
    entries = [row("emp-app", 2.333), row("emp-app", 2.333), row("emp-for", 1.115, "Overtime"), row("emp-sup", 7.777)]

    report = builder.daily(snapshot(entries), WORK_DAY)

    assert report.grand_total_hours == pytest.approx(sum(e.total_hours for e in report.employees))
    assert report.regular_hours == pytest.approx(sum(e.regular_hours for e in report.employees))
    assert report.overtime_hours == pytest.approx(sum(e.overtime_hours for e in report.employees))
    assert [e.classification for e in report.employees] == ["Supervisor", "Foreman", "Apprentice"]


def test_daily_report_attendance_columns(builder):
    sign_ins = [
        SignInRow("emp-for", WORK_DAY, at(7), at(11)),
        SignInRow("emp-for", WORK_DAY, at(12), at(16)),
        SignInRow("emp-app", WORK_DAY, at(6, 30), None),
    ]

    report = builder.daily(snapshot([row("emp-for", 8), row("emp-app", 8)], sign_ins), WORK_DAY)

    by_id = {e.employee_id: e for e in report.employees}
    assert (by_id["emp-for"].sign_in_time, by_id["emp-for"].sign_out_time) == (at(7), at(16))
    assert (by_id["emp-app"].sign_in_time, by_id["emp-app"].sign_out_time) == (at(6, 30), None)


def test_daily_report_for_empty_day(builder):
    report = builder.daily(snapshot([]), WORK_DAY)

    assert report.employees == []
    assert report.grand_total_hours == 0


def test_week_bounds_start_on_monday():
    assert week_bounds(date(2024, 1, 10)) == (date(2024, 1, 8), date(2024, 1, 14))
    assert week_bounds(date(2024, 1, 8)) == (date(2024, 1, 8), date(2024, 1, 14))
    assert week_bounds(date(2024, 1, 14)) == (date(2024, 1, 8), date(2024, 1, 14))


def test_weekly_report_zero_fills_every_day(builder):
    start, end = week_bounds(WORK_DAY)
    entries = [
        row("emp-for", 8, day=date(2024, 1, 8)),
        row("emp-for", 2, "Overtime", project_id="prj-har", day=WORK_DAY),
        row("emp-app", 4, day=WORK_DAY),
    ]

    report = builder.weekly(snapshot(entries, start=start, end=end), start, end)

    foreman = report.employees[0]
    by_day = {day.date.isoformat(): day for day in foreman.daily_hours}
    assert list(by_day) == [f"2024-01-{day:02d}" for day in range(8, 15)]
    assert by_day["2024-01-08"].hours == 8
    assert by_day["2024-01-10"].hours == 2
    assert by_day["2024-01-13"].hours == 0
    assert by_day["2024-01-13"].projects == []
    assert foreman.projects == ["Main St Substation", "Harbor Lighting"]
    assert report.daily_totals["2024-01-10"] == 6
    assert report.daily_totals["2024-01-14"] == 0
    assert report.grand_total_hours == sum(report.daily_totals.values()) == 14


def test_weekly_days_break_down_by_project(builder):
    start, end = week_bounds(WORK_DAY)
    entries = [
        row("emp-for", 6, day=date(2024, 1, 9)),
        row("emp-for", 2.5, "Overtime", project_id="prj-har", day=date(2024, 1, 9)),
        row("emp-for", 1.25, project_id="prj-har", day=date(2024, 1, 9)),
        row("emp-for", 4, "DoubleTime", day=date(2024, 1, 12)),
    ]

    report = builder.weekly(snapshot(entries, start=start, end=end), start, end)

    foreman = report.employees[0]
    assert sum(day.hours for day in foreman.daily_hours) == pytest.approx(foreman.total_hours)
    for day in foreman.daily_hours:
        assert sum(project.hours for project in day.projects) == pytest.approx(day.hours)
    tuesday = foreman.daily_hours[1]
    assert tuesday.date == date(2024, 1, 9)
    assert {p.project_id: p.hours for p in tuesday.projects} == {"prj-sub": 6, "prj-har": 3.75}
    assert [p.project_number for p in foreman.daily_hours[4].projects] == ["P-100"]


def test_weekly_csv_has_a_column_per_day(builder):
    start, end = week_bounds(WORK_DAY)
    report = builder.weekly(snapshot([row("emp-app", 7.5)], start=start, end=end), start, end)

    header, line = render_csv(report_rows(report)).splitlines()

    assert '"2024-01-08","2024-01-09","2024-01-10"' in header
    assert '"0.00","0.00","7.50"' in line


def test_project_cost_uses_entry_rate_then_employee_rate(builder):
    project = type("ProjectStub", (), {"id": "prj-sub", "name": "Main St Substation", "project_number": "P-100"})()
    entries = [
        row("emp-for", 8),
        row("emp-for", 2, "Overtime", rate=60.0),
        row("emp-sup", 4),
        row("emp-app", 5, project_id="prj-har"),
    ]

    report = builder.project_cost(snapshot(entries), project, WORK_DAY, WORK_DAY)

    by_id = {e.employee_id: e for e in report.employees}
    assert set(by_id) == {"emp-for", "emp-sup"}
    assert by_id["emp-for"].rate == 45.0
    assert by_id["emp-for"].cost == 8 * 45 + 2 * 60
    assert by_id["emp-sup"].rate is None
    assert by_id["emp-sup"].cost == 0
    assert report.total_hours == 14
    assert report.total_cost == 480


def test_explicit_zero_entry_rate_is_not_replaced_by_employee_rate(builder):
    project = type("ProjectStub", (), {"id": "prj-sub", "name": "Main St Substation", "project_number": "P-100"})()
    volunteer = row("emp-for", 4, rate=0.0)

    assert volunteer.effective_rate == 0.0
    assert volunteer.cost == 0

    report = builder.project_cost(snapshot([volunteer, row("emp-for", 2)]), project, WORK_DAY, WORK_DAY)

    assert report.employees[0].rate == 0.0
    assert report.total_cost == 2 * 45


def test_summary_report_counts_and_top_projects():
    builder = PayrollReportBuilder(top_projects_limit=1)
    entries = [
        row("emp-for", 8),
        row("emp-for", 2, "DoubleTime", project_id="prj-har"),
        row("emp-app", 6),
    ]

    report = builder.summary(snapshot(entries), WORK_DAY, WORK_DAY)

    assert report.employee_count == 2
    assert report.project_count == 2
    assert report.total_labor_hours == 16
    assert report.regular_hours == 14
    assert report.overtime_hours == 4
    assert report.total_labor_cost == 8 * 45 + 2 * 45 + 6 * 25
    assert [(p.project_id, p.hours) for p in report.top_projects] == [("prj-sub", 14)]


def test_summary_of_empty_range(builder):
    report = builder.summary(snapshot([]), WORK_DAY, WORK_DAY)

    assert report.total_labor_hours == 0
    assert report.total_labor_cost == 0
    assert report.employee_count == report.project_count == 0
    assert report.top_projects == []


@pytest.fixture
def recorded(db, crew):
    def create(employee_id, hours, work_type="Regular", project_id=crew.substation, day=WORK_DAY):
        return time_entries.create_entry(
            db,
            TimeEntryData(employee_id=employee_id, project_id=project_id, date=day, hours_worked=hours, work_type=work_type),
            created_by="mgr-1",
        )

    approved = create(crew.foreman, 8)
    time_entries.approve_entry(db, approved.id, approver_id="boss-1")
    create(crew.foreman, 2, "Overtime", project_id=crew.harbor)
    create(crew.apprentice, 6)
    return crew


def test_build_daily_report_from_database(db, recorded):
    report = build_report(db, ReportRequest("daily", on_date=WORK_DAY))

    assert report.grand_total_hours == 16
    assert [e.employee_id for e in report.employees] == [recorded.foreman, recorded.apprentice]


def test_status_filter_limits_report_to_approved_work(db, recorded):
    report = build_report(db, ReportRequest("daily", on_date=WORK_DAY, statuses=["APPROVED"]))

    assert report.grand_total_hours == 8
    assert [e.employee_id for e in report.employees] == [recorded.foreman]


def test_weekly_report_from_single_date(db, recorded):
    report = build_report(db, ReportRequest("weekly", on_date=WORK_DAY))

    assert (report.start_date, report.end_date) == (date(2024, 1, 8), date(2024, 1, 14))
    assert report.daily_totals["2024-01-10"] == 16


def test_project_cost_report_from_database(db, recorded):
    report = build_report(
        db, ReportRequest("project-cost", project_id=recorded.substation, start_date=WORK_DAY, end_date=WORK_DAY)
    )

    assert report.project_number == "P-100"
    assert report.total_hours == 14
    assert report.total_cost == 8 * 45 + 6 * 25


def test_project_cost_without_entries_is_zero(db, crew):
    report = build_report(
        db, ReportRequest("project-cost", project_id=crew.harbor, start_date=WORK_DAY, end_date=WORK_DAY)
    )

    assert report.employees == []
    assert report.total_hours == 0
    assert report.total_cost == 0


def test_project_cost_for_unknown_project(db, crew):
    with pytest.raises(NotFoundError):
        build_report(db, ReportRequest("project-cost", project_id="nowhere", start_date=WORK_DAY, end_date=WORK_DAY))


@pytest.mark.parametrize(
    "request_",
    [
        ReportRequest("payroll", start_date=WORK_DAY, end_date=WORK_DAY),
        ReportRequest("summary", start_date=date(2024, 1, 12), end_date=WORK_DAY),
        ReportRequest("summary", start_date=WORK_DAY),
        ReportRequest("daily"),
        ReportRequest("project-cost", start_date=WORK_DAY, end_date=WORK_DAY),
    ],
)
def test_invalid_report_requests(db, crew, request_):
    with pytest.raises(ValidationError):
        build_report(db, request_)


class BrokenSession:
    def query(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))


def test_snapshot_storage_failure_is_internal_error():
    with pytest.raises(InternalError) as excinfo:
        load_snapshot(BrokenSession(), WORK_DAY, WORK_DAY)

    assert excinfo.value.status_code == 500
    assert excinfo.value.details["start"] == "2024-01-10"


def test_daily_csv_has_one_row_per_employee_project(builder):
    report = builder.daily(snapshot([row("emp-for", 8), row("emp-for", 2, "Overtime", project_id="prj-har")]), WORK_DAY)

    lines = render_csv(report_rows(report)).splitlines()

    assert lines[0].startswith('"Employee ID","Employee Name","Classification","Date","Project ID"')
    assert len(lines) == 3
    assert '"Harbor Lighting","2.00","10.00"' in lines[2]


def test_summary_has_no_csv_rows_but_serializes(builder):
    report = builder.summary(snapshot([row("emp-for", 8)]), WORK_DAY, WORK_DAY)

    with pytest.raises(ValueError):
        report_rows(report)
    assert report_to_dict(report)["total_labor_hours"] == 8
    assert render_csv([]) == ""
