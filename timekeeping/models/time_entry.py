from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from timekeeping.db.session import Base, new_id
from timekeeping.states import EntryStatus, WorkType


class TimeEntry(Base):
    __tablename__ = "time_entries"

    id = Column(String(36), primary_key=True, default=new_id)
    employee_id = Column(String(36), ForeignKey("employees.id"), nullable=False, index=True)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=False, index=True)
    timesheet_id = Column(String(36), ForeignKey("timesheets.id"), nullable=True, index=True)
    sign_in_id = Column(String(36), ForeignKey("daily_sign_ins.id"), nullable=True)
    # Position within the owning timesheet, preserves entry order for rendering.
    line_number = Column(Integer, nullable=True)
    date = Column(Date, nullable=False, index=True)
    hours_worked = Column(Numeric(scale=2), nullable=False)
    work_type = Column(String(20), nullable=False, default=WorkType.REGULAR.value)
    description = Column(Text, nullable=True)
    task_performed = Column(Text, nullable=True)
    hourly_rate = Column(Numeric(scale=2), nullable=True)
    start_time = Column(DateTime, nullable=True)
    end_time = Column(DateTime, nullable=True)

    status = Column(String(20), nullable=False, default=EntryStatus.PENDING.value, index=True)
    rejection_reason = Column(Text, nullable=True)
    created_by = Column(String(36), nullable=False)
    updated_by = Column(String(36), nullable=True)
    approved_by = Column(String(36), nullable=True)
    approved_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    employee = relationship("Employee")
    project = relationship("Project")
    timesheet = relationship("Timesheet", back_populates="time_entries")
