"""Lookups against employee and project records owned by other services."""

from __future__ import annotations

from typing import Iterable, List

from sqlalchemy.orm import Session

from timekeeping.core.errors import NotFoundError
from timekeeping.models import Employee, Project


def get_employee(db: Session, employee_id: str) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise NotFoundError("Employee", employee_id)
    return employee


def get_project(db: Session, project_id: str) -> Project:
    project = db.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project", project_id)
    return project


def missing_employee_ids(db: Session, employee_ids: Iterable[str]) -> List[str]:
    wanted = list(dict.fromkeys(employee_ids))
    if not wanted:
        return []
    found = {row.id for row in db.query(Employee.id).filter(Employee.id.in_(wanted)).all()}
    return [employee_id for employee_id in wanted if employee_id not in found]
