import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "false")

from unittest.mock import patch  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import app.models  # noqa: E402,F401
from app.api.deps import get_db  # noqa: E402
from app.db import Base, enable_sqlite_foreign_keys  # noqa: E402
from app.main import app  # noqa: E402
from app.models.workspace import User  # noqa: E402
from app.schemas.workspace import WorkspaceCreate  # noqa: E402
from app.services.actor import load_actor  # noqa: E402
from app.services.auth import issue_token  # noqa: E402
from app.services.workspaces import workspaces  # noqa: E402

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


enable_sqlite_foreign_keys(engine)


@pytest.fixture(autouse=True)
def _silence_events():
    with patch("app.tasks.events.process_event.delay") as mock_delay:
        yield mock_delay


@pytest.fixture()
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def _make_user(db_session, name: str, email: str, **kwargs) -> User:
    user = User(name=name, email=email, **kwargs)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def person(db_session):
    return _make_user(db_session, "Ada Lovelace", "ada@example.com")


@pytest.fixture()
def other_person(db_session):
    return _make_user(db_session, "Grace Hopper", "grace@example.com")


@pytest.fixture()
def workspace(db_session, person):
    ws = workspaces.create(db_session, WorkspaceCreate(name="Acme Corp"), person.id)
    db_session.commit()
    db_session.refresh(ws)
    return ws


@pytest.fixture()
def actor(db_session, person, workspace):
    return load_actor(db_session, person)


@pytest.fixture()
def client(db_session):
    def override_get_db():
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers(db_session, person):
    raw = issue_token(db_session, person.id)
    db_session.commit()
    return {"Authorization": f"Bearer {raw}"}


@pytest.fixture()
def other_auth_headers(db_session, other_person):
    raw = issue_token(db_session, other_person.id)
    db_session.commit()
    return {"Authorization": f"Bearer {raw}"}
