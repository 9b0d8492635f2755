from __future__ import annotations

import os

os.environ.setdefault("APP_ENVIRONMENT", "testing")
os.environ.setdefault("DB_SQLITE_PATH", ":memory:")

from collections.abc import Iterator
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from talentgrid.infrastructure.config import reset_settings
from talentgrid.infrastructure.db import configure_sqlite_engine
from talentgrid.infrastructure.models import Base, EmployeeORM, EvaluationCycleORM
from talentgrid.web.dependencies import get_db_session
from talentgrid.web.main import create_application


@pytest.fixture(autouse=True)
def fresh_settings() -> Iterator[None]:
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite_engine(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def SessionLocal(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def session(SessionLocal: sessionmaker[Session]) -> Iterator[Session]:
    s = SessionLocal()
    yield s
    s.close()


@pytest.fixture
def client(SessionLocal: sessionmaker[Session]) -> TestClient:
    app = create_application()

    def override_get_db_session():
        s = SessionLocal()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db_session] = override_get_db_session
    return TestClient(app)


def add_employee(s: Session, name: str = "Ana Souza", email: str | None = None) -> EmployeeORM:
    employee = EmployeeORM(
        name=name,
        email=email or f"{name.lower().replace(' ', '.')}@example.com",
        position="Analyst",
        department="Engineering",
    )
    s.add(employee)
    s.flush()
    return employee


def add_cycle(s: Session, status: str = "open", title: str = "2025 H1") -> EvaluationCycleORM:
    cycle = EvaluationCycleORM(
        title=title,
        start_date=date(2025, 1, 1),
        end_date=date(2025, 12, 31),
        status=status,
        is_editable=status != "closed",
    )
    s.add(cycle)
    s.flush()
    return cycle


@pytest.fixture
def make_employee(session: Session):
    def _make(name: str = "Ana Souza", email: str | None = None) -> EmployeeORM:
        return add_employee(session, name, email)

    return _make


@pytest.fixture
def make_cycle(session: Session):
    def _make(status: str = "open", title: str = "2025 H1") -> EvaluationCycleORM:
        return add_cycle(session, status, title)

    return _make
