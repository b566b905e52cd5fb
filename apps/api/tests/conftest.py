import os
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

os.environ.setdefault(
    "REPAIRDESK_DATABASE_URL",
    f"sqlite+pysqlite:///{Path(tempfile.mkdtemp()) / 'repairdesk-test.db'}",
)
os.environ.setdefault("REPAIRDESK_TESTING", "true")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import repairdesk.models  # noqa: E402,F401
from repairdesk.db.base import Base  # noqa: E402
from repairdesk.db.session import SessionLocal  # noqa: E402
from repairdesk.db.session import engine as app_engine  # noqa: E402
from repairdesk.main import app  # noqa: E402
from repairdesk.observability import metrics_store  # noqa: E402
from repairdesk.services.orders_service import OrderLifecycleEngine  # noqa: E402
from repairdesk.services.policy import Actor, Role  # noqa: E402
from repairdesk.services.stores import (  # noqa: E402
    InMemoryDatabase,
    in_memory_unit_of_work_factory,
    sql_unit_of_work_factory,
)


class TickingClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=app_engine)
    Base.metadata.create_all(bind=app_engine)
    yield


@pytest.fixture(autouse=True)
def reset_metrics_store():
    metrics_store.reset()
    yield


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def order_engine(clock) -> OrderLifecycleEngine:
    return OrderLifecycleEngine(sql_unit_of_work_factory(SessionLocal), clock=clock)


@pytest.fixture
def memory_database() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def memory_engine(memory_database, clock) -> OrderLifecycleEngine:
    return OrderLifecycleEngine(in_memory_unit_of_work_factory(memory_database), clock=clock)


@pytest.fixture
def customer() -> Actor:
    return Actor(user_id="cust-1", role=Role.CUSTOMER)


@pytest.fixture
def other_customer() -> Actor:
    return Actor(user_id="cust-2", role=Role.CUSTOMER)


@pytest.fixture
def technician() -> Actor:
    return Actor(user_id="tech-1", role=Role.TECHNICIAN)


@pytest.fixture
def other_technician() -> Actor:
    return Actor(user_id="tech-2", role=Role.TECHNICIAN)


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
