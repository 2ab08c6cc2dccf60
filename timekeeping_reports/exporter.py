from __future__ import annotations

import csv
import io
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List

from .reports import DailyReport, ProjectCostReport, WeeklyReport

ReportRow = Dict[str, Any]


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def daily_rows(report: DailyReport) -> List[ReportRow]:
    """One row per employee per project worked that day."""

    rows: List[ReportRow] = []
    for employee in report.employees:
        for project in employee.projects:
            rows.append(
                {
                    "Employee ID": employee.employee_id,
                    "Employee Name": employee.employee_name,
                    "Classification": employee.classification,
                    "Date": report.date,
                    "Project ID": project.project_id,
                    "Project Name": project.project_name,
                    "Hours": project.hours,
                    "Employee Total Hours": employee.total_hours,
                    "Regular Hours": employee.regular_hours,
                    "Overtime Hours": employee.overtime_hours,
                    "Sign In Time": employee.sign_in_time,
                    "Sign Out Time": employee.sign_out_time,
                }
            )
    return rows


def weekly_rows(report: WeeklyReport) -> List[ReportRow]:
    rows: List[ReportRow] = []
    for employee in report.employees:
        row: ReportRow = {
            "Employee ID": employee.employee_id,
            "Employee Name": employee.employee_name,
            "Classification": employee.classification,
            "Week Start": report.start_date,
            "Week End": report.end_date,
        }
        row.update({day.date.isoformat(): day.hours for day in employee.daily_hours})
        row.update(
            {
                "Total Hours": employee.total_hours,
                "Regular Hours": employee.regular_hours,
                "Overtime Hours": employee.overtime_hours,
                "Projects": "; ".join(employee.projects),
            }
        )
        rows.append(row)
    return rows


def project_cost_rows(report: ProjectCostReport) -> List[ReportRow]:
    return [
        {
            "Project Number": report.project_number,
            "Project Name": report.project_name,
            "Employee ID": row.employee_id,
            "Employee Name": row.employee_name,
            "Classification": row.classification,
            "Hours": row.hours,
            "Rate": row.rate,
            "Cost": row.cost,
        }
        for row in report.employees
    ]


def report_rows(report: Any) -> List[ReportRow]:
    if isinstance(report, DailyReport):
        return daily_rows(report)
    if isinstance(report, WeeklyReport):
        return weekly_rows(report)
    if isinstance(report, ProjectCostReport):
        return project_cost_rows(report)
    raise ValueError(f"CSV export is not available for {type(report).__name__}")


def render_csv(rows: Iterable[ReportRow]) -> str:
    rows = list(rows)
    handle = io.StringIO()
    if not rows:
        return ""
    writer = csv.DictWriter(handle, fieldnames=list(rows[0].keys()), quoting=csv.QUOTE_ALL)
    writer.writeheader()
    for row in rows:
        writer.writerow({key: _stringify(value) for key, value in row.items()})
    return handle.getvalue()


def export_csv(rows: Iterable[ReportRow], output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_csv(rows), encoding="utf-8")
    return output_path


def report_to_dict(report: Any) -> Dict[str, Any]:
    if not is_dataclass(report):
        raise ValueError(f"Not a report: {type(report).__name__}")
    return asdict(report)

