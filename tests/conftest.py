import os

os.environ.setdefault("TIMEKEEPING_DATABASE_URL", "sqlite://")

from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import timekeeping.models  # noqa: F401
from timekeeping.db.session import Base, create_db_engine
from timekeeping.models import Employee, Project

WORK_DAY = date(2024, 1, 10)


@pytest.fixture
def engine():
    engine = create_db_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def crew(db):
    employees = {
        "apprentice": Employee(id="emp-app", first_name="Ada", last_name="Apprentice", classification="Apprentice", hourly_rate=Decimal("25.00")),
        "foreman": Employee(id="emp-for", first_name="Finn", last_name="Foreman", classification="Foreman", hourly_rate=Decimal("45.00")),
        "journeyman": Employee(id="emp-jou", first_name="Jo", last_name="Journey", classification="Journeyman", hourly_rate=Decimal("38.00")),
        "supervisor": Employee(id="emp-sup", first_name="Sam", last_name="Super", classification="Supervisor", hourly_rate=None),
    }
    projects = {
        "substation": Project(id="prj-sub", project_number="P-100", name="Main St Substation"),
        "harbor": Project(id="prj-har", project_number="P-200", name="Harbor Lighting"),
    }
    db.add_all(list(employees.values()) + list(projects.values()))
    db.commit()
    return SimpleNamespace(
        apprentice="emp-app",
        foreman="emp-for",
        journeyman="emp-jou",
        supervisor="emp-sup",
        substation="prj-sub",
        harbor="prj-har",
    )


def at(hour: int, minute: int = 0, day: date = WORK_DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute)
