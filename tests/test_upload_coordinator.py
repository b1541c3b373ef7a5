"""
Tests for upload validation, staging, synchronous and asynchronous launch,
launch failures and cancellation.
"""

import time
from dataclasses import replace

import pytest

from authentication.identity import CallerIdentity
from db.session import SessionLocal
from models.job_execution import JobStatus
from services.batch.upload_coordinator import UploadCoordinator
from services.exceptions import AccessDenied, ValidationError

SCENARIO = (
    b"name,description,price,stockQuantity\n"
    b"Laptop,Gaming,1899.99,15\n"
    b"BadRow,,-5,abc\n"
    b"Mouse,Wireless,29.99,50\n"
)


def _wait_for_terminal(coordinator, execution_id, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        snapshot = coordinator.status(execution_id)
        if snapshot.is_terminal:
            return snapshot
        time.sleep(0.02)
    raise AssertionError(f"job {execution_id} did not finish within {timeout}s")


def test_synchronous_upload_runs_to_completion(coordinator, caller):
    snapshot = coordinator.upload("products.csv", SCENARIO, caller)

    assert snapshot.status is JobStatus.COMPLETED
    assert snapshot.job_execution_id == 1
    assert snapshot.total_records == 3
    assert snapshot.success_count == 2
    assert snapshot.skip_count == 1
    assert snapshot.failure_count == 0
    assert snapshot.uploaded_by == caller.username
    assert coordinator.status(1) == snapshot


@pytest.mark.parametrize("filename", ["products.txt", "products.csv.exe", None, "csv"])
def test_non_csv_names_are_rejected_before_launch(coordinator, caller, filename):
    with pytest.raises(ValidationError) as excinfo:
        coordinator.upload(filename, SCENARIO, caller)

    assert excinfo.value.message == "Only .csv files are allowed"
    assert len(coordinator.store) == 0


@pytest.mark.parametrize("content", [b"", None])
def test_empty_upload_is_rejected(coordinator, caller, content):
    with pytest.raises(ValidationError, match="File is empty"):
        coordinator.upload("products.csv", content, caller)


def test_uppercase_extension_is_accepted(coordinator, caller):
    assert coordinator.upload("PRODUCTS.CSV", SCENARIO, caller).status is JobStatus.COMPLETED


def test_reuploads_get_distinct_executions_and_staged_files(coordinator, caller):
    first = coordinator.upload("products.csv", SCENARIO, caller)
    second = coordinator.upload("products.csv", SCENARIO, caller)

    assert first.job_execution_id != second.job_execution_id
    staged = sorted(coordinator.storage.batch_dir.iterdir())
    assert len(staged) == 2
    assert all(path.suffix == ".csv" for path in staged)
    assert all(path.read_bytes() == SCENARIO for path in staged)


def test_imported_products_belong_to_uploader(coordinator, caller):
    from models.product import Product

    coordinator.upload("products.csv", SCENARIO, caller)

    session = SessionLocal()
    try:
        owners = {p.owner_id for p in session.query(Product).all()}
    finally:
        session.close()
    assert owners == {caller.user_id}


def test_staging_failure_returns_failed_snapshot(coordinator, caller, monkeypatch):
    def broken_stage(filename, content):
        raise OSError("disk full")

    monkeypatch.setattr(coordinator.storage, "stage_batch_file", broken_stage)

    snapshot = coordinator.upload("products.csv", SCENARIO, caller)

    assert snapshot.status is JobStatus.FAILED
    assert snapshot.job_execution_id is None
    assert snapshot.message == "Batch job failed to start"
    assert snapshot.errors == ["Could not stage upload: disk full"]


def test_unknown_execution_is_not_found(coordinator):
    snapshot = coordinator.status(999)

    assert snapshot.status is JobStatus.NOT_FOUND
    assert coordinator.cancel(999, None).status is JobStatus.NOT_FOUND


def test_asynchronous_upload_returns_started_then_completes(batch_settings, caller):
    coordinator = UploadCoordinator(replace(batch_settings, async_launch=True), SessionLocal)
    try:
        snapshot = coordinator.upload("products.csv", SCENARIO, caller)
        assert snapshot.status is JobStatus.STARTED

        final = _wait_for_terminal(coordinator, snapshot.job_execution_id)
        assert final.status is JobStatus.COMPLETED
        assert final.success_count == 2
    finally:
        coordinator.shutdown()


def test_launch_after_shutdown_fails_cleanly(batch_settings, caller):
    coordinator = UploadCoordinator(replace(batch_settings, async_launch=True), SessionLocal)
    coordinator._get_executor().shutdown()

    snapshot = coordinator.upload("products.csv", SCENARIO, caller)

    assert snapshot.status is JobStatus.FAILED
    assert snapshot.message == "Batch job failed to start"
    assert coordinator.status(snapshot.job_execution_id).status is JobStatus.FAILED


def test_cancel_of_finished_job_is_a_no_op(coordinator, caller):
    snapshot = coordinator.upload("products.csv", SCENARIO, caller)

    assert coordinator.cancel(snapshot.job_execution_id, caller) == snapshot


def test_stranger_cannot_cancel_running_job(blocked_coordinator, caller):
    coordinator, gate = blocked_coordinator
    snapshot = coordinator.upload("products.csv", SCENARIO, caller)
    stranger = CallerIdentity(user_id=99, username="stranger@example.com", role="user")

    with pytest.raises(AccessDenied):
        coordinator.cancel(snapshot.job_execution_id, stranger)
    with pytest.raises(AccessDenied):
        coordinator.cancel(snapshot.job_execution_id, None)

    gate.set()
    final = _wait_for_terminal(coordinator, snapshot.job_execution_id)
    assert final.status is JobStatus.COMPLETED


@pytest.mark.parametrize("role,user_id", [("user", 1), ("admin", 42)])
def test_uploader_or_admin_can_cancel(blocked_coordinator, caller, role, user_id):
    coordinator, gate = blocked_coordinator
    snapshot = coordinator.upload("products.csv", SCENARIO, caller)
    canceller = CallerIdentity(user_id=user_id, username=f"{role}@example.com", role=role)

    coordinator.cancel(snapshot.job_execution_id, canceller)
    gate.set()

    final = _wait_for_terminal(coordinator, snapshot.job_execution_id)
    assert final.status is JobStatus.STOPPED
    assert final.success_count == 0
