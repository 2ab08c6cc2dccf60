from __future__ import annotations

import argparse
import json
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Optional

from timekeeping.core.config import settings
from timekeeping.core.errors import TimekeepingError
from timekeeping.core.logging import configure_logging
from timekeeping.db.session import init_db, naive_utc, session_scope
from timekeeping.domains.sign_ins import service as sign_ins
from timekeeping.domains.time_entries import service as time_entries
from timekeeping.domains.timesheets import service as timesheets
from timekeeping.models import Employee, Project
from timekeeping_reports.exporter import export_csv, report_rows, report_to_dict
from timekeeping_reports.reports import REPORT_TYPES, ReportRequest, build_report

DEFAULT_USER = "cli"


def parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    return date.fromisoformat(value)


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


def cmd_init_db(args: argparse.Namespace) -> None:
    init_db()
    print(f"Initialized database at {settings.database_url}")


def cmd_add_employee(args: argparse.Namespace) -> None:
    with session_scope() as db:
        employee = Employee(
            first_name=args.first_name,
            last_name=args.last_name,
            classification=args.classification,
            hourly_rate=args.rate,
        )
        if args.id:
            employee.id = args.id
        db.add(employee)
        db.flush()
        print(f"Added employee {employee.id} ({employee.full_name})")


def cmd_add_project(args: argparse.Namespace) -> None:
    with session_scope() as db:
        project = Project(project_number=args.number, name=args.name)
        if args.id:
            project.id = args.id
        db.add(project)
        db.flush()
        print(f"Added project {project.id} ({project.project_number} {project.name})")


def cmd_sign_in(args: argparse.Namespace) -> None:
    sign_in_time = naive_utc(parse_datetime(args.time)) or datetime.utcnow()
    with session_scope() as db:
        result = sign_ins.bulk_sign_in(
            db,
            args.employees,
            on_date=parse_date(args.date) or sign_in_time.date(),
            sign_in_time=sign_in_time,
            signed_in_by=args.user,
            location=args.location,
            project_id=args.project,
            notes=args.notes,
        )
        for record in result.signed_in:
            print(f"Signed in {record.employee_id} at {record.sign_in_time:%H:%M} ({record.id})")
        for employee_id in result.already_signed_in:
            print(f"Already signed in: {employee_id}")


def cmd_sign_out(args: argparse.Namespace) -> None:
    with session_scope() as db:
        record = sign_ins.sign_out(
            db,
            args.id,
            sign_out_time=parse_datetime(args.time) or datetime.utcnow(),
            signed_out_by=args.user,
        )
        print(f"Signed out {record.employee_id} at {record.sign_out_time:%H:%M}")


def cmd_active(args: argparse.Namespace) -> None:
    with session_scope() as db:
        for record in sign_ins.list_active(db):
            print(f"{record.id} {record.employee_id} {record.date} since {record.sign_in_time:%H:%M} location={record.location or '-'}")


def cmd_add_time(args: argparse.Namespace) -> None:
    data = time_entries.TimeEntryData(
        employee_id=args.employee,
        project_id=args.project,
        date=parse_date(args.date),
        hours_worked=args.hours,
        work_type=args.work_type,
        description=args.description,
        task_performed=args.task,
        hourly_rate=args.rate,
    )
    with session_scope() as db:
        entry = time_entries.create_entry(db, data, created_by=args.user)
        print(f"Created time entry {entry.id} for {float(entry.hours_worked):g} hours on {entry.date}")


def cmd_approve(args: argparse.Namespace) -> None:
    with session_scope() as db:
        entry = time_entries.approve_entry(db, args.id, approver_id=args.user)
        print(f"Approved entry {entry.id}")


def cmd_reject(args: argparse.Namespace) -> None:
    with session_scope() as db:
        entry = time_entries.reject_entry(db, args.id, approver_id=args.user, reason=args.reason)
        print(f"Rejected entry {entry.id}: {entry.rejection_reason}")


def cmd_pending(args: argparse.Namespace) -> None:
    with session_scope() as db:
        for entry in time_entries.list_unapproved(db):
            print(
                f"{entry.id} {entry.employee_id} {entry.date} {float(entry.hours_worked):g}h "
                f"{entry.work_type} project={entry.project_id}"
            )


def cmd_auto_entry(args: argparse.Namespace) -> None:
    with session_scope() as db:
        entry = time_entries.auto_create_from_sign_in(db, args.sign_in, args.project, created_by=args.user)
        print(f"Created time entry {entry.id} for {float(entry.hours_worked):g} hours on {entry.date}")


def cmd_report(args: argparse.Namespace) -> None:
    request = ReportRequest(
        report_type=args.report,
        on_date=parse_date(args.date),
        start_date=parse_date(args.start_date),
        end_date=parse_date(args.end_date),
        project_id=args.project,
        employee_id=args.employee,
        statuses=args.status,
    )
    with session_scope() as db:
        report = build_report(db, request)

    if args.output and Path(args.output).suffix.lower() == ".csv":
        output_path = export_csv(report_rows(report), Path(args.output))
        print(f"Report exported to {output_path}")
        return
    rendered = json.dumps(report_to_dict(report), default=str, indent=2)
    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(rendered, encoding="utf-8")
        print(f"Report exported to {output_path}")
    else:
        print(rendered)


def cmd_timesheet_pdf(args: argparse.Namespace) -> None:
    output_path = Path(args.output)
    with session_scope() as db:
        content = timesheets.export_timesheet_pdf(db, args.id)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(content)
    print(f"Timesheet exported to {output_path}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Construction timekeeping CLI")
    parser.add_argument("--user", default=DEFAULT_USER, help="Acting user recorded in audit fields")
    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init-db", help="Create database tables")
    init.set_defaults(func=cmd_init_db)

    employee = sub.add_parser("add-employee", help="Add an employee")
    employee.add_argument("first_name")
    employee.add_argument("last_name")
    employee.add_argument("--classification")
    employee.add_argument("--rate", type=float, help="Hourly rate")
    employee.add_argument("--id")
    employee.set_defaults(func=cmd_add_employee)

    project = sub.add_parser("add-project", help="Add a project")
    project.add_argument("number")
    project.add_argument("name")
    project.add_argument("--id")
    project.set_defaults(func=cmd_add_project)

    sign_in = sub.add_parser("sign-in", help="Sign one or more employees in")
    sign_in.add_argument("employees", nargs="+")
    sign_in.add_argument("--date")
    sign_in.add_argument("--time", help="ISO timestamp, defaults to now")
    sign_in.add_argument("--location")
    sign_in.add_argument("--project")
    sign_in.add_argument("--notes")
    sign_in.set_defaults(func=cmd_sign_in)

    sign_out = sub.add_parser("sign-out", help="Close an active sign-in")
    sign_out.add_argument("id")
    sign_out.add_argument("--time", help="ISO timestamp, defaults to now")
    sign_out.set_defaults(func=cmd_sign_out)

    active = sub.add_parser("active", help="List employees currently signed in")
    active.set_defaults(func=cmd_active)

    add_time = sub.add_parser("add-time", help="Record a time entry")
    add_time.add_argument("employee")
    add_time.add_argument("project")
    add_time.add_argument("date")
    add_time.add_argument("hours", type=float)
    add_time.add_argument("--work-type", default="Regular", choices=["Regular", "Overtime", "DoubleTime"])
    add_time.add_argument("--task")
    add_time.add_argument("--description")
    add_time.add_argument("--rate", type=float)
    add_time.set_defaults(func=cmd_add_time)

    approve = sub.add_parser("approve", help="Approve a pending time entry")
    approve.add_argument("id")
    approve.set_defaults(func=cmd_approve)

    reject = sub.add_parser("reject", help="Reject a pending time entry")
    reject.add_argument("id")
    reject.add_argument("reason")
    reject.set_defaults(func=cmd_reject)

    pending = sub.add_parser("pending", help="List unapproved entries")
    pending.set_defaults(func=cmd_pending)

    auto_entry = sub.add_parser("auto-entry", help="Create a time entry from a closed sign-in")
    auto_entry.add_argument("sign_in")
    auto_entry.add_argument("project")
    auto_entry.set_defaults(func=cmd_auto_entry)

    report = sub.add_parser("report", help="Build a payroll report")
    report.add_argument("report", choices=REPORT_TYPES)
    report.add_argument("--date")
    report.add_argument("--start-date")
    report.add_argument("--end-date")
    report.add_argument("--project")
    report.add_argument("--employee")
    report.add_argument("--status", action="append", choices=["PENDING", "APPROVED", "REJECTED"])
    report.add_argument("--output", help="Write to a .csv or .json file instead of stdout")
    report.set_defaults(func=cmd_report)

    pdf = sub.add_parser("timesheet-pdf", help="Render a timesheet to PDF")
    pdf.add_argument("id")
    pdf.add_argument("output")
    pdf.set_defaults(func=cmd_timesheet_pdf)

    return parser


def main(argv: list[str] | None = None) -> int:
    # stdout carries command output; logs go to stderr.
    configure_logging(settings.log_level, stream=sys.stderr)
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.func(args)
    except TimekeepingError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
