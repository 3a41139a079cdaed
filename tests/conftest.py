from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from perfreview.main import app
from perfreview.db.base import Base
from perfreview.db.session import get_db
from perfreview.core.clock import FixedClock
from perfreview.core.config import Settings
from perfreview.core.outbox import InlineOutbox
from perfreview.services.container import Services, get_services

from tests.helpers import RecordingMailer

# One in-memory database shared by the test session, the request sessions and
# the side-effect sessions opened by NotificationService.
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def clock():
    return FixedClock(datetime(2025, 1, 10, 9, 0))


@pytest.fixture()
def mailer():
    return RecordingMailer()


@pytest.fixture()
def services(clock, mailer):
    return Services(
        settings=Settings(APP_ENV="test", CRON_SECRET=None, OUTBOX_MODE="inline"),
        session_factory=TestingSessionLocal,
        mailer=mailer,
        outbox=InlineOutbox(),
        clock=clock,
    )


@pytest.fixture(autouse=True)
def override_dependencies(db_session, services):
    def _get_db_override():
        db = TestingSessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db_override
    app.dependency_overrides[get_services] = lambda: services
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
def client():
    return TestClient(app)
