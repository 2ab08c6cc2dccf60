from datetime import datetime

from sqlalchemy import Column, Date, DateTime, String, Text
from sqlalchemy.orm import relationship

from timekeeping.db.session import Base, new_id
from timekeeping.states import TimesheetStatus


class Timesheet(Base):
    __tablename__ = "timesheets"

    id = Column(String(36), primary_key=True, default=new_id)
    date = Column(Date, nullable=False, index=True)
    title = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=TimesheetStatus.DRAFT.value)

    created_by = Column(String(36), nullable=False)
    updated_by = Column(String(36), nullable=True)
    submitted_by = Column(String(36), nullable=True)
    submitted_at = Column(DateTime, nullable=True)
    approved_by = Column(String(36), nullable=True)
    approved_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    time_entries = relationship(
        "TimeEntry",
        back_populates="timesheet",
        order_by="TimeEntry.line_number",
    )
