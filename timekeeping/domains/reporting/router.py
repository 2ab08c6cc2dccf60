from __future__ import annotations

import datetime as dt
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from timekeeping.core.errors import ValidationError
from timekeeping.db.session import get_session
from timekeeping.states import EntryStatus
from timekeeping_reports.exporter import render_csv, report_rows
from timekeeping_reports.reports import (
    DailyReport,
    ProjectCostReport,
    ReportRequest,
    SummaryReport,
    WeeklyReport,
    build_report,
)

router = APIRouter(prefix="/reports", tags=["reporting"])

OutputFormat = Literal["json", "csv"]


def _statuses(statuses: list[str] | None) -> list[str] | None:
    if not statuses:
        return None
    try:
        return [EntryStatus(value.upper()).value for value in statuses]
    except ValueError as exc:
        raise ValidationError(
            f"Unknown status in {statuses}; expected {', '.join(s.value for s in EntryStatus)}",
            field="statuses",
        ) from exc


def _respond(report: Any, output: OutputFormat, filename: str) -> Any:
    if output == "json":
        return report
    return Response(
        content=render_csv(report_rows(report)),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}.csv"'},
    )


@router.get("/daily", response_model=DailyReport)
def daily_report(
    on_date: dt.date,
    employee_id: str | None = None,
    project_id: str | None = None,
    statuses: list[str] | None = Query(default=None),
    output: OutputFormat = "json",
    db: Session = Depends(get_session),
) -> Any:
    request = ReportRequest(
        report_type="daily",
        on_date=on_date,
        employee_id=employee_id,
        project_id=project_id,
        statuses=_statuses(statuses),
    )
    return _respond(build_report(db, request), output, f"daily-report-{on_date.isoformat()}")


@router.get("/weekly", response_model=WeeklyReport)
def weekly_report(
    start_date: dt.date | None = None,
    end_date: dt.date | None = None,
    on_date: dt.date | None = None,
    employee_id: str | None = None,
    project_id: str | None = None,
    statuses: list[str] | None = Query(default=None),
    output: OutputFormat = "json",
    db: Session = Depends(get_session),
) -> Any:
    request = ReportRequest(
        report_type="weekly",
        on_date=on_date,
        start_date=start_date,
        end_date=end_date,
        employee_id=employee_id,
        project_id=project_id,
        statuses=_statuses(statuses),
    )
    report = build_report(db, request)
    return _respond(report, output, f"weekly-report-{report.start_date.isoformat()}")


@router.get("/project-cost/{project_id}", response_model=ProjectCostReport)
def project_cost_report(
    project_id: str,
    start_date: dt.date,
    end_date: dt.date,
    employee_id: str | None = None,
    statuses: list[str] | None = Query(default=None),
    output: OutputFormat = "json",
    db: Session = Depends(get_session),
) -> Any:
    request = ReportRequest(
        report_type="project-cost",
        project_id=project_id,
        start_date=start_date,
        end_date=end_date,
        employee_id=employee_id,
        statuses=_statuses(statuses),
    )
    return _respond(build_report(db, request), output, f"project-cost-{project_id}")


@router.get("/summary", response_model=SummaryReport)
def payroll_summary(
    start_date: dt.date,
    end_date: dt.date,
    employee_id: str | None = None,
    project_id: str | None = None,
    statuses: list[str] | None = Query(default=None),
    db: Session = Depends(get_session),
) -> Any:
    request = ReportRequest(
        report_type="summary",
        start_date=start_date,
        end_date=end_date,
        employee_id=employee_id,
        project_id=project_id,
        statuses=_statuses(statuses),
    )
    return build_report(db, request)
