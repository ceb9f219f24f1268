import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from pointage.app import app  # noqa: E402
from pointage.db import build_engine, build_session_factory, get_db  # noqa: E402
from pointage.models import (Base, Employee, LeaveType, PublicHoliday,  # noqa: E402
                             Task, WorkSchedule)


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield build_session_factory(engine)
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded(db):
    db.add(
        WorkSchedule(
            contract_type="cdi_35h",
            monday_hours=7.0,
            tuesday_hours=7.0,
            wednesday_hours=7.0,
            thursday_hours=7.0,
            friday_hours=7.0,
            weekly_hours=35.0,
        )
    )
    manager = Employee(first_name="Claire", last_name="Bernard", contract_type="cdi_35h")
    db.add(manager)
    db.flush()

    employee = Employee(
        first_name="Alice", last_name="Martin", contract_type="cdi_35h", manager_id=manager.id
    )
    intern = Employee(first_name="Bob", last_name="Durand", contract_type=None, manager_id=manager.id)
    paid_leave = LeaveType(name="Congés payés", days_per_year=25)
    sick_leave = LeaveType(name="Maladie", days_per_year=None)
    task = Task(reference="T-001", title="Plans niveau 1", project_title="Projet A", time_gamme=8.0)
    holiday = PublicHoliday(day=date(2025, 3, 5), label="Test", country="FR", year=2025)
    db.add_all([employee, intern, paid_leave, sick_leave, task, holiday])
    db.commit()

    return {
        "manager": manager.id,
        "employee": employee.id,
        "intern": intern.id,
        "paid_leave": paid_leave.id,
        "sick_leave": sick_leave.id,
        "task": task.id,
    }


@pytest.fixture
def client(session_factory, seeded):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
