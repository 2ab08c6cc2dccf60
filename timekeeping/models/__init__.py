from .daily_sign_in import DailySignIn
from .employee import Employee
from .project import Project
from .time_entry import TimeEntry
from .timesheet import Timesheet

__all__ = ["Employee", "Project", "DailySignIn", "TimeEntry", "Timesheet"]
