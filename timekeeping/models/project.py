from datetime import datetime

from sqlalchemy import Column, DateTime, String

from timekeeping.db.session import Base, new_id


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=new_id)
    project_number = Column(String(50), nullable=False)
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
