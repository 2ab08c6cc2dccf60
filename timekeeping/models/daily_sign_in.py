from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import relationship

from timekeeping.db.session import Base, new_id


class DailySignIn(Base):
    __tablename__ = "daily_sign_ins"
    __table_args__ = (
        # At most one open (not signed out) record per employee per day.
        Index(
            "uq_daily_sign_ins_active",
            "employee_id",
            "date",
            unique=True,
            sqlite_where=text("sign_out_time IS NULL"),
            postgresql_where=text("sign_out_time IS NULL"),
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    employee_id = Column(String(36), ForeignKey("employees.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    sign_in_time = Column(DateTime, nullable=False)
    sign_out_time = Column(DateTime, nullable=True)
    location = Column(String(200), nullable=True)
    project_id = Column(String(36), ForeignKey("projects.id"), nullable=True)
    notes = Column(Text, nullable=True)
    signed_in_by = Column(String(36), nullable=True)
    signed_out_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    employee = relationship("Employee")
    project = relationship("Project")

    @property
    def is_active(self) -> bool:
        return self.sign_out_time is None
