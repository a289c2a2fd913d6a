import os
import sys
from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

TEST_DATABASE_URL = "sqlite://"
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("GOLDEN_KEY_GATEWAY", "database")

from golden_keys.database import Base  # noqa: E402
from golden_keys.main import app  # noqa: E402
from golden_keys.models import GoldenKeyRecord  # noqa: E402
from golden_keys.services.golden_key_catalog import GoldenKeyCatalog  # noqa: E402
from golden_keys.services.golden_key_gateway import (  # noqa: E402
    JsonFileGoldenKeyGateway,
    SqlAlchemyGoldenKeyGateway,
)
from golden_keys.services.golden_key_workflow import (  # noqa: E402
    GoldenKeyWorkflow,
    get_golden_key_workflow,
)

BASE_TIME = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)


class SequentialIds:
    def __init__(self, prefix: str = "gk") -> None:
        self.prefix = prefix
        self.issued: list[str] = []

    def __call__(self) -> str:
        value = f"{self.prefix}-{len(self.issued) + 1:04d}"
        self.issued.append(value)
        return value


class TickingClock:
    """Return a new timestamp one minute after the previous one on every call."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(minutes=1)
        return value


def _create_testing_engine():
    return create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )


@pytest.fixture(scope="session")
def engine():
    engine = _create_testing_engine()
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def session_factory(engine) -> sessionmaker:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False, future=True)


@pytest.fixture()
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def seed_golden_key(db_session: Session) -> Callable[..., GoldenKeyRecord]:
    """Insert a row directly, standing in for the external review process."""
    counter = {"value": 0}

    def _seed(key: str, *, approval_status: str = "approved", **overrides) -> GoldenKeyRecord:
        counter["value"] += 1
        created_at = BASE_TIME - timedelta(days=30 - counter["value"])
        values = {
            "id": f"seed-{counter['value']:04d}",
            "key": key,
            "label": key.replace("_", " ").title(),
            "description": "",
            "data_type": "string",
            "required": False,
            "owner": "Data Governance",
            "version": "1.0",
            "approval_status": approval_status,
            "created_at": created_at,
            "updated_at": created_at,
            "approved_at": created_at + timedelta(days=1) if approval_status != "pending" else None,
        }
        values.update(overrides)
        record = GoldenKeyRecord(**values)
        db_session.add(record)
        db_session.commit()
        return record

    return _seed


@pytest.fixture()
def id_factory() -> SequentialIds:
    return SequentialIds()


@pytest.fixture()
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture()
def sql_gateway(session_factory) -> SqlAlchemyGoldenKeyGateway:
    return SqlAlchemyGoldenKeyGateway(session_factory)


@pytest.fixture()
def json_gateway(tmp_path) -> JsonFileGoldenKeyGateway:
    return JsonFileGoldenKeyGateway(tmp_path / "store")


@pytest.fixture()
def workflow(sql_gateway, id_factory, clock) -> GoldenKeyWorkflow:
    return GoldenKeyWorkflow(GoldenKeyCatalog(sql_gateway), id_factory=id_factory, clock=clock)


class PrefixedTestClient(TestClient):
    api_prefix = "/api"

    def request(self, method: str, url: str, *args, **kwargs):  # type: ignore[override]
        if url.startswith("/"):
            url = f"{self.api_prefix}{url}"
        return super().request(method, url, *args, **kwargs)


@pytest.fixture()
def client(workflow: GoldenKeyWorkflow) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_golden_key_workflow] = lambda: workflow

    client = PrefixedTestClient(app)
    try:
        yield client
    finally:
        app.dependency_overrides.pop(get_golden_key_workflow, None)
