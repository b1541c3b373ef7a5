# services/batch/__init__.py

import threading

from db.session import SessionLocal
from services.batch.config import BatchSettings
from services.batch.upload_coordinator import UploadCoordinator

_coordinator: UploadCoordinator | None = None
_coordinator_lock = threading.Lock()


def get_upload_coordinator() -> UploadCoordinator:
    global _coordinator
    with _coordinator_lock:
        if _coordinator is None:
            _coordinator = UploadCoordinator(BatchSettings.from_env(), SessionLocal)
        return _coordinator


def shutdown_upload_coordinator() -> None:
    global _coordinator
    with _coordinator_lock:
        coordinator, _coordinator = _coordinator, None
    if coordinator is not None:
        coordinator.shutdown()
