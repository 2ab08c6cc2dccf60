from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Numeric, String

from timekeeping.db.session import Base, new_id


class Employee(Base):
    __tablename__ = "employees"

    id = Column(String(36), primary_key=True, default=new_id)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    # Free-text job title; drives report grouping and sort priority only.
    classification = Column(String(100), nullable=True)
    hourly_rate = Column(Numeric(scale=2), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
