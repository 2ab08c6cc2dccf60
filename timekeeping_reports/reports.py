from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from timekeeping.classification import DEFAULT_RANKS, ClassificationRanks, group_and_sort_by_employee
from timekeeping.core.config import settings
from timekeeping.core.errors import ValidationError
from timekeeping.core.logging import get_logger
from timekeeping.core.observability import reports_counter, tracer
from timekeeping.domains.directory import get_project
from timekeeping.overtime import HoursBreakdown, OvertimeAggregator

from .data import EntryRow, ReportSnapshot, SignInRow, load_snapshot
from .filters import filter_entries

logger = get_logger(__name__)

REPORT_TYPES = ("daily", "weekly", "project-cost", "summary")


@dataclass
class ReportRequest:
    report_type: str
    on_date: date | None = None
    start_date: date | None = None
    end_date: date | None = None
    project_id: str | None = None
    employee_id: str | None = None
    statuses: List[str] | None = None


@dataclass
class ProjectHours:
    project_id: str
    project_name: str
    project_number: Optional[str]
    hours: float


@dataclass
class DailyEmployeeRow:
    employee_id: str
    employee_name: str
    classification: Optional[str]
    total_hours: float
    regular_hours: float
    overtime_hours: float
    projects: List[ProjectHours] = field(default_factory=list)
    sign_in_time: Optional[datetime] = None
    sign_out_time: Optional[datetime] = None


@dataclass
class DailyReport:
    date: date
    employees: List[DailyEmployeeRow]
    grand_total_hours: float
    regular_hours: float
    overtime_hours: float


@dataclass
class DailyHours:
    date: date
    hours: float
    projects: List[ProjectHours] = field(default_factory=list)


@dataclass
class WeeklyEmployeeRow:
    employee_id: str
    employee_name: str
    classification: Optional[str]
    daily_hours: List[DailyHours]
    total_hours: float
    regular_hours: float
    overtime_hours: float
    projects: List[str] = field(default_factory=list)


@dataclass
class WeeklyReport:
    start_date: date
    end_date: date
    employees: List[WeeklyEmployeeRow]
    daily_totals: Dict[str, float]
    grand_total_hours: float
    regular_hours: float
    overtime_hours: float


@dataclass
class ProjectCostRow:
    employee_id: str
    employee_name: str
    classification: Optional[str]
    hours: float
    rate: Optional[float]
    cost: float


@dataclass
class ProjectCostReport:
    project_id: str
    project_name: str
    project_number: Optional[str]
    start_date: date
    end_date: date
    employees: List[ProjectCostRow]
    total_hours: float
    total_cost: float


@dataclass
class SummaryReport:
    start_date: date
    end_date: date
    total_labor_hours: float
    regular_hours: float
    overtime_hours: float
    total_labor_cost: float
    employee_count: int
    project_count: int
    top_projects: List[ProjectHours]


def _round_breakdown(breakdown: HoursBreakdown) -> Tuple[float, float, float]:
    return (
        round(breakdown.total_hours, 2),
        round(breakdown.regular_hours, 2),
        round(breakdown.overtime_hours, 2),
    )


def _project_hours(entries: List[EntryRow]) -> List[ProjectHours]:
    buckets: Dict[str, ProjectHours] = {}
    for entry in entries:
        bucket = buckets.get(entry.project_id)
        if bucket is None:
            bucket = buckets[entry.project_id] = ProjectHours(
                project_id=entry.project_id,
                project_name=entry.project_name,
                project_number=entry.project_number,
                hours=0.0,
            )
        bucket.hours += entry.hours_worked
    for bucket in buckets.values():
        bucket.hours = round(bucket.hours, 2)
    return list(buckets.values())


def _attendance(sign_ins: List[SignInRow]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Earliest sign-in and latest sign-out; no sign-out while one is still open."""

    if not sign_ins:
        return None, None
    first_in = min(row.sign_in_time for row in sign_ins)
    if any(row.sign_out_time is None for row in sign_ins):
        return first_in, None
    return first_in, max(row.sign_out_time for row in sign_ins)


def week_bounds(day: date) -> Tuple[date, date]:
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


def _date_range(start: date, end: date) -> List[date]:
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


class PayrollReportBuilder:
    """Turns a report snapshot into daily, weekly, project cost and summary reports.

    Every builder works only on the snapshot it is handed. Report-level totals
    are merged from the per-row figures, never re-summed from raw entries,
    so a total always equals the sum of the rows shown beside it.
    """

    def __init__(self, ranks: ClassificationRanks = DEFAULT_RANKS, top_projects_limit: int = 5) -> None:
        self.ranks = ranks
        self.top_projects_limit = top_projects_limit
        self.aggregator = OvertimeAggregator()

    def daily(self, snapshot: ReportSnapshot, on_date: date) -> DailyReport:
        entries = filter_entries(snapshot.entries, start_date=on_date, end_date=on_date)
        sign_ins_by_employee: Dict[str, List[SignInRow]] = defaultdict(list)
        for row in snapshot.sign_ins:
            if row.date == on_date:
                sign_ins_by_employee[row.employee_id].append(row)

        rows: List[DailyEmployeeRow] = []
        totals = HoursBreakdown()
        for group in group_and_sort_by_employee(entries, self.ranks):
            first = group.entries[0]
            total, regular, overtime = _round_breakdown(group.subtotal)
            sign_in_time, sign_out_time = _attendance(sign_ins_by_employee.get(group.employee_id, []))
            rows.append(
                DailyEmployeeRow(
                    employee_id=group.employee_id,
                    employee_name=first.employee_name,
                    classification=first.classification,
                    total_hours=total,
                    regular_hours=regular,
                    overtime_hours=overtime,
                    projects=_project_hours(group.entries),
                    sign_in_time=sign_in_time,
                    sign_out_time=sign_out_time,
                )
            )
            totals.merge(HoursBreakdown(total, regular, overtime))

        grand_total, regular_total, overtime_total = _round_breakdown(totals)
        return DailyReport(
            date=on_date,
            employees=rows,
            grand_total_hours=grand_total,
            regular_hours=regular_total,
            overtime_hours=overtime_total,
        )

    def weekly(self, snapshot: ReportSnapshot, start: date, end: date) -> WeeklyReport:
        entries = filter_entries(snapshot.entries, start_date=start, end_date=end)
        days = _date_range(start, end)

        rows: List[WeeklyEmployeeRow] = []
        totals = HoursBreakdown()
        daily_totals: Dict[str, float] = {day.isoformat(): 0.0 for day in days}
        for group in group_and_sort_by_employee(entries, self.ranks):
            first = group.entries[0]
            by_day: Dict[date, List[EntryRow]] = defaultdict(list)
            for entry in group.entries:
                by_day[entry.date].append(entry)
            daily_hours = []
            for day in days:
                projects = _project_hours(by_day.get(day, []))
                daily_hours.append(
                    DailyHours(date=day, hours=round(sum((p.hours for p in projects), 0.0), 2), projects=projects)
                )

            total, regular, overtime = _round_breakdown(group.subtotal)
            rows.append(
                WeeklyEmployeeRow(
                    employee_id=group.employee_id,
                    employee_name=first.employee_name,
                    classification=first.classification,
                    daily_hours=daily_hours,
                    total_hours=total,
                    regular_hours=regular,
                    overtime_hours=overtime,
                    projects=list(dict.fromkeys(entry.project_name for entry in group.entries)),
                )
            )
            totals.merge(HoursBreakdown(total, regular, overtime))
            for day_hours in daily_hours:
                daily_totals[day_hours.date.isoformat()] += day_hours.hours

        grand_total, regular_total, overtime_total = _round_breakdown(totals)
        return WeeklyReport(
            start_date=start,
            end_date=end,
            employees=rows,
            daily_totals={day: round(hours, 2) for day, hours in daily_totals.items()},
            grand_total_hours=grand_total,
            regular_hours=regular_total,
            overtime_hours=overtime_total,
        )

    def _cost_rows(self, entries: List[EntryRow]) -> List[ProjectCostRow]:
        rows: List[ProjectCostRow] = []
        for group in group_and_sort_by_employee(entries, self.ranks):
            first = group.entries[0]
            rate = next(
                (entry.effective_rate for entry in group.entries if entry.effective_rate is not None), None
            )
            rows.append(
                ProjectCostRow(
                    employee_id=group.employee_id,
                    employee_name=first.employee_name,
                    classification=first.classification,
                    hours=round(group.subtotal.total_hours, 2),
                    rate=rate,
                    # Each entry is costed at its own rate.
                    cost=round(sum(entry.cost for entry in group.entries), 2),
                )
            )
        return rows

    def project_cost(self, snapshot: ReportSnapshot, project: Any, start: date, end: date) -> ProjectCostReport:
        entries = filter_entries(snapshot.entries, start_date=start, end_date=end, project_ids=[project.id])
        rows = self._cost_rows(entries)
        return ProjectCostReport(
            project_id=project.id,
            project_name=project.name,
            project_number=project.project_number,
            start_date=start,
            end_date=end,
            employees=rows,
            total_hours=round(sum(row.hours for row in rows), 2),
            total_cost=round(sum(row.cost for row in rows), 2),
        )

    def summary(self, snapshot: ReportSnapshot, start: date, end: date) -> SummaryReport:
        entries = filter_entries(snapshot.entries, start_date=start, end_date=end)
        employee_count, project_count = self.aggregator.distinct_counts(entries)

        by_project: Dict[str, List[EntryRow]] = defaultdict(list)
        for entry in entries:
            by_project[entry.project_id].append(entry)

        projects: List[ProjectHours] = []
        breakdown = HoursBreakdown()
        total_cost = 0.0
        for project_entries in by_project.values():
            projects.extend(_project_hours(project_entries))
            breakdown.merge(self.aggregator.aggregate(project_entries))
            total_cost += sum(row.cost for row in self._cost_rows(project_entries))

        total_hours, regular_hours, overtime_hours = _round_breakdown(breakdown)
        top_projects = sorted(projects, key=lambda item: item.hours, reverse=True)[: self.top_projects_limit]
        return SummaryReport(
            start_date=start,
            end_date=end,
            total_labor_hours=total_hours,
            regular_hours=regular_hours,
            overtime_hours=overtime_hours,
            total_labor_cost=round(total_cost, 2),
            employee_count=employee_count,
            project_count=project_count,
            top_projects=top_projects,
        )


def default_builder() -> PayrollReportBuilder:
    return PayrollReportBuilder(
        ranks=ClassificationRanks(settings.classification_ranks),
        top_projects_limit=settings.top_projects_limit,
    )


def _resolve_range(request: ReportRequest) -> Tuple[date, date]:
    if request.start_date and request.end_date:
        start, end = request.start_date, request.end_date
    elif request.report_type == "weekly" and (request.on_date or request.start_date):
        start, end = week_bounds(request.on_date or request.start_date)
    else:
        raise ValidationError(
            f"{request.report_type} report requires start_date and end_date",
            fields=["start_date", "end_date"],
        )
    if start > end:
        raise ValidationError(
            "start_date must not be after end_date",
            start_date=start.isoformat(),
            end_date=end.isoformat(),
        )
    return start, end


def _daily(db: Session, request: ReportRequest, builder: PayrollReportBuilder) -> DailyReport:
    on_date = request.on_date or request.start_date
    if on_date is None:
        raise ValidationError("daily report requires a date", field="on_date")
    snapshot = load_snapshot(
        db,
        on_date,
        on_date,
        employee_id=request.employee_id,
        project_id=request.project_id,
        statuses=request.statuses,
        include_sign_ins=True,
    )
    return builder.daily(snapshot, on_date)


def _weekly(db: Session, request: ReportRequest, builder: PayrollReportBuilder) -> WeeklyReport:
    start, end = _resolve_range(request)
    snapshot = load_snapshot(
        db, start, end, employee_id=request.employee_id, project_id=request.project_id, statuses=request.statuses
    )
    return builder.weekly(snapshot, start, end)


def _project_cost(db: Session, request: ReportRequest, builder: PayrollReportBuilder) -> ProjectCostReport:
    if not request.project_id:
        raise ValidationError("project-cost report requires project_id", field="project_id")
    start, end = _resolve_range(request)
    project = get_project(db, request.project_id)
    snapshot = load_snapshot(
        db, start, end, employee_id=request.employee_id, project_id=project.id, statuses=request.statuses
    )
    return builder.project_cost(snapshot, project, start, end)


def _summary(db: Session, request: ReportRequest, builder: PayrollReportBuilder) -> SummaryReport:
    start, end = _resolve_range(request)
    snapshot = load_snapshot(
        db, start, end, employee_id=request.employee_id, project_id=request.project_id, statuses=request.statuses
    )
    return builder.summary(snapshot, start, end)


REPORT_BUILDERS: Dict[str, Callable[[Session, ReportRequest, PayrollReportBuilder], Any]] = {
    "daily": _daily,
    "weekly": _weekly,
    "project-cost": _project_cost,
    "summary": _summary,
}


def build_report(db: Session, request: ReportRequest, builder: PayrollReportBuilder | None = None) -> Any:
    try:
        handler = REPORT_BUILDERS[request.report_type]
    except KeyError as exc:
        raise ValidationError(
            f"Unknown report type: {request.report_type}",
            field="report_type",
            allowed=list(REPORT_TYPES),
        ) from exc

    with tracer.start_as_current_span(f"report.{request.report_type}"):
        report = handler(db, request, builder or default_builder())
    reports_counter.add(1, {"report_type": request.report_type})
    logger.info(
        "report_generated",
        report_type=request.report_type,
        on_date=request.on_date.isoformat() if request.on_date else None,
        start_date=request.start_date.isoformat() if request.start_date else None,
        end_date=request.end_date.isoformat() if request.end_date else None,
        project_id=request.project_id,
    )
    return report
