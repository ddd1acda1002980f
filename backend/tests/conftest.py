from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Generator, Sequence

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

# Ensure the project root (which exposes the ``backend`` package) is on ``sys.path``
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("ENABLE_SHEETS_REFRESH", "0")

from backend.app import models  # noqa: E402,F401
from backend.app.database import Base, get_db  # noqa: E402
from backend.app.main import app  # noqa: E402
from backend.app.periods import Period  # noqa: E402
from backend.app.services.scheduler_monitor import SchedulerMonitor  # noqa: E402
from backend.app.services.sheet_sources import SheetSource  # noqa: E402

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


# pysqlite needs to leave transaction control to SQLAlchemy for SAVEPOINTs to work.
@event.listens_for(engine, "connect")
def _disable_pysqlite_transactions(dbapi_connection, connection_record) -> None:
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _emit_begin(connection) -> None:
    connection.exec_driver_sql("BEGIN")


@pytest.fixture(scope="session", autouse=True)
def setup_database() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _reset_scheduler_monitor() -> Generator[None, None, None]:
    SchedulerMonitor.reset()
    yield
    SchedulerMonitor.reset()


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    connection = engine.connect()
    transaction = connection.begin()
    # Service commits release a SAVEPOINT; the outer transaction is always rolled back.
    session = TestingSessionLocal(bind=connection, join_transaction_mode="create_savepoint")
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def client(db_session: Session, monkeypatch) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        try:
            yield db_session
        finally:
            db_session.expire_all()

    monkeypatch.setenv("ENABLE_SHEETS_REFRESH", "0")
    monkeypatch.setattr("backend.app.main.run_database_migrations", lambda: None)
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.pop(get_db, None)


class StubSource(SheetSource):
    """In-memory transport returning a fixed cell matrix or raising ``error``."""

    def __init__(
        self,
        name: str,
        rows: Sequence[Sequence[Any]] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.name = name
        self.rows = [list(row) for row in rows or []]
        self.error = error
        self.calls: list[Period] = []

    def fetch_rows(self, period: Period) -> list[list[Any]]:
        self.calls.append(period)
        if self.error is not None:
            raise self.error
        return [list(row) for row in self.rows]


@pytest.fixture
def stub_source_factory():
    return StubSource


SAMPLE_SHEET_ROWS: list[list[str]] = [
    ["🚨 TICKETS CRÍTICOS", "", "", ""],
    [
        "ID:", "101", "Nome:", "Ana Souza", "Email:", "ana@example.com",
        "Flag Urgente:", "SIM ⚠️", "Flag VIP:", "SIM", "Score Risco:", "ALTO 🔴",
        "Status:", "open", "Dias Cliente:", "12", "Timestamp:", "2025-01-15 10:30",
    ],
    [
        "ID:", "102", "Nome:", "Bruno Lima", "Email:", "bruno@example.com",
        "Flag Urgente:", "SIM", "Flag VIP:", "NÃO", "Status:", "closed",
        "Dias Cliente:", "400", "Já Cancelou Antes:", "SIM", "Timestamp:", "2025-01-14 09:00",
    ],
    [
        "ID:", "103", "Nome:", "Carla Dias", "Email:", "carla@example.com",
        "Flag Especializado:", "SIM", "Score Recorrência:", "ALTA", "Status:", "closed",
        "Dias Cliente:", "45", "Classificação:", "Suporte", "Timestamp:", "2025-01-13 08:00",
    ],
    ["Observação:", "", "Nome:", "Sem sinal"],
]


@pytest.fixture
def sample_sheet_rows() -> list[list[str]]:
    return [list(row) for row in SAMPLE_SHEET_ROWS]
