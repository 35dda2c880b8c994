"""Shared fixtures: temporary database, app client, organisation and admin."""

import os
import tempfile

# Setup environment for testing, before any chaosops import reads settings
os.environ["CHAOSOPS_DATA_DIR"] = tempfile.mkdtemp()
os.environ["CHAOSOPS_DB_PATH"] = os.path.join(os.environ["CHAOSOPS_DATA_DIR"], "test.db")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

from chaosops.database import engine, init_db  # noqa: E402
from chaosops.main import app  # noqa: E402
from chaosops.models.organisation import Organisation, User  # noqa: E402
from chaosops.models.planning import DayPlan, Event, ScheduleItem  # noqa: E402
from chaosops.utils.security import hash_password  # noqa: E402

ADMIN_PASSWORD = "flipchart123"


@pytest.fixture(autouse=True)
def fresh_db():
    SQLModel.metadata.drop_all(engine)
    init_db()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def session():
    with Session(engine) as s:
        yield s


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


def _create_org(session: Session, name: str) -> str:
    org = Organisation(name=name)
    org_id = org.id
    session.add(org)
    session.commit()
    return org_id


def _create_admin(session: Session, org_id: str, username: str) -> str:
    user = User(
        organisation_id=org_id,
        username=username,
        password_hash=hash_password(ADMIN_PASSWORD),
        role="admin",
    )
    user_id = user.id
    session.add(user)
    session.commit()
    return user_id


@pytest.fixture
def org_id(session) -> str:
    return _create_org(session, "Jugend Nord")


@pytest.fixture
def other_org_id(session) -> str:
    return _create_org(session, "Jugend Süd")


@pytest.fixture
def auth_headers(client, session, org_id) -> dict:
    _create_admin(session, org_id, "admin")
    r = client.post("/api/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['accessToken']}"}


@pytest.fixture
def other_auth_headers(client, session, other_org_id) -> dict:
    _create_admin(session, other_org_id, "other-admin")
    r = client.post("/api/auth/login", json={"username": "other-admin", "password": ADMIN_PASSWORD})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['accessToken']}"}


@pytest.fixture
def make_day_plan(session):
    """Factory: make_day_plan(org_id, date, items) -> day plan id."""

    def _make(organisation_id, day, items=(), name="Tag 1"):
        event = Event(organisation_id=organisation_id, name="Sommerfreizeit")
        session.add(event)
        session.flush()
        plan = DayPlan(event_id=event.id, name=name, date=day)
        plan_id = plan.id
        session.add(plan)
        session.flush()
        for position, item in enumerate(items):
            session.add(ScheduleItem(day_plan_id=plan_id, position=position, **item))
        session.commit()
        return plan_id

    return _make
