"""Pytest configuration — in-memory SQLite test database & FastAPI TestClient."""

from __future__ import annotations

import os
from typing import Generator
from unittest.mock import MagicMock, patch

import pytest

# Override env BEFORE importing app modules so Settings picks up test values.
os.environ.update(
    {
        "DATABASE_URL": "sqlite:///:memory:",
        "RUN_MIGRATIONS_ON_STARTUP": "false",
        "S3_ENDPOINT_URL": "http://localhost:9000",
        "S3_ACCESS_KEY": "test",
        "S3_SECRET_KEY": "test",
        "S3_BUCKET": "test-cyberlab",
        "LOG_JSON": "false",
        "APP_ENV": "test",
    }
)

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from cyberlab.auth.principal import Principal, Role  # noqa: E402
from cyberlab.core.database import Base, build_engine, get_db  # noqa: E402
from cyberlab.main import app  # noqa: E402
from cyberlab.models.enums import CasePriority  # noqa: E402
from cyberlab.services import cases, exhibits  # noqa: E402

# ── Force all models to register on Base.metadata ──────────────────
import cyberlab.models  # noqa: E402, F401

# ── In-memory SQLite engine ────────────────────────────────────────

_engine = build_engine("sqlite:///:memory:")

_TestSession = sessionmaker(bind=_engine, class_=Session, expire_on_commit=False)


@pytest.fixture(autouse=True)
def _create_tables():
    """Create all tables before each test and drop after."""
    Base.metadata.create_all(bind=_engine)
    yield
    Base.metadata.drop_all(bind=_engine)


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Yield a test DB session."""
    session = _TestSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db: Session) -> Generator[TestClient, None, None]:
    """FastAPI TestClient wired to in-memory DB, with S3 mocked."""

    def _override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db

    with (
        patch("cyberlab.main.init_logging"),
        patch("cyberlab.services.blob_store.ensure_bucket"),
        patch("cyberlab.services.blob_store.get_s3_client", return_value=MagicMock()),
    ):
        with TestClient(app) as tc:
            yield tc

    app.dependency_overrides.clear()


# ── Principals ─────────────────────────────────────────────────────


@pytest.fixture()
def exhibit_officer() -> Principal:
    return Principal(id="eo-1", role=Role.exhibit_officer, name="Insp. Mwakyusa", badge_number="EO-1001")


@pytest.fixture()
def admin() -> Principal:
    return Principal(id="adm-1", role=Role.administrator, name="Admin", badge_number="AD-0001")


@pytest.fixture()
def supervisor() -> Principal:
    return Principal(id="sup-1", role=Role.supervisor, name="Supt. Kweka", badge_number="SP-2002")


@pytest.fixture()
def commander() -> Principal:
    return Principal(id="co-1", role=Role.commanding_officer, name="ACP Lyimo", badge_number="CO-3003")


@pytest.fixture()
def analyst() -> Principal:
    return Principal(id="an-1", role=Role.forensic_analyst, name="Sgt. Mollel", badge_number="FA-4004")


@pytest.fixture()
def other_analyst() -> Principal:
    return Principal(id="an-2", role=Role.forensic_analyst, name="Cpl. Nyirenda", badge_number="FA-4005")


@pytest.fixture()
def investigator() -> Principal:
    return Principal(id="inv-1", role=Role.investigator, name="D/Sgt. Juma", badge_number="IN-5005")


# ── Domain factories ───────────────────────────────────────────────


@pytest.fixture()
def make_case(db: Session, exhibit_officer: Principal):
    """Factory: open a case for 2026 and return it."""

    def _make(title: str = "Mobile money fraud", **kwargs):
        kwargs.setdefault("year", 2026)
        kwargs.setdefault("priority", CasePriority.medium)
        return cases.create_case(db, exhibit_officer, title=title, **kwargs)

    return _make


@pytest.fixture()
def make_exhibit(db: Session, exhibit_officer: Principal):
    """Factory: register a computer exhibit against a case."""

    def _make(case, **kwargs):
        kwargs.setdefault("exhibit_type", "computer")
        kwargs.setdefault("device_name", "Dell Latitude 5420")
        kwargs.setdefault("storage_location", "Evidence Room 1")
        return exhibits.register_exhibit(db, exhibit_officer, case.id, **kwargs)

    return _make


@pytest.fixture()
def investigating_case(db: Session, make_case, supervisor: Principal, analyst: Principal):
    """A case moved to under_investigation by assigning an analyst."""
    case = make_case()
    return cases.assign_case(db, supervisor, case.id, analyst_id=analyst.id)
