"""
Shared fixtures for the product catalog tests.

The application reads DATABASE_URL at import time, so the environment is
pointed at an in-memory SQLite database before anything from the backend is
imported. Tables are created and dropped around every test.
"""

import os
import threading
from dataclasses import replace

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")

from pathlib import Path  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from db.base import Base  # noqa: E402
from db.session import SessionLocal, engine  # noqa: E402
from main import app  # noqa: E402
from authentication.deps import get_caller_identity  # noqa: E402
from authentication.identity import CallerIdentity  # noqa: E402
from services.batch import get_upload_coordinator  # noqa: E402
from services.batch.config import BatchSettings  # noqa: E402
from services.batch.upload_coordinator import UploadCoordinator  # noqa: E402

CSV_HEADER = "name,description,price,stockQuantity\n"


@pytest.fixture(autouse=True)
def database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def batch_settings(tmp_path) -> BatchSettings:
    return BatchSettings(uploads_dir=tmp_path / "uploads", async_launch=False)


@pytest.fixture
def coordinator(batch_settings):
    coordinator = UploadCoordinator(batch_settings, SessionLocal)
    yield coordinator
    coordinator.shutdown()


@pytest.fixture
def blocked_coordinator(batch_settings):
    """Asynchronous coordinator whose only worker is held until the gate is set."""
    coordinator = UploadCoordinator(replace(batch_settings, async_launch=True, max_workers=1), SessionLocal)
    gate = threading.Event()
    coordinator._get_executor().submit(gate.wait)
    yield coordinator, gate
    gate.set()
    coordinator.shutdown()


@pytest.fixture
def caller() -> CallerIdentity:
    return CallerIdentity(user_id=1, username="tester@example.com", role="user")


@pytest.fixture
def write_csv(tmp_path):
    """Write a CSV file with the standard header and the given data lines."""

    def _write(*lines: str, name: str = "products.csv") -> Path:
        path = tmp_path / name
        body = "".join(f"{line}\n" for line in lines)
        path.write_text(CSV_HEADER + body, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def client(coordinator, caller):
    app.dependency_overrides[get_caller_identity] = lambda: caller
    app.dependency_overrides[get_upload_coordinator] = lambda: coordinator
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
