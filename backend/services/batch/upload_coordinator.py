import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from sqlalchemy.orm import sessionmaker

from authentication.identity import CallerIdentity
from models.job_execution import JobExecution, JobStatus
from services.batch.chunk_writer import ChunkWriter
from services.batch.config import BatchSettings
from services.batch.job_runner import JobParameters, JobRunner
from services.batch.job_status_store import JobStatusStore
from services.authorization import can_modify
from services.exceptions import AccessDenied, LaunchError, ValidationError
from services.file_storage import FileStorage

logger = logging.getLogger(__name__)

LAUNCH_FAILED_MESSAGE = "Batch job failed to start"


def validate_csv_upload(filename: str | None, content: bytes | None) -> None:
    if not content:
        raise ValidationError("File is empty")
    if not filename or not filename.lower().endswith(".csv"):
        raise ValidationError("Only .csv files are allowed")


@dataclass
class _ActiveJob:
    cancel_event: threading.Event
    owner_id: int | None


class UploadCoordinator:
    """Accepts CSV uploads, stages them and launches import jobs."""

    def __init__(
        self,
        settings: BatchSettings,
        session_factory: sessionmaker,
        store: JobStatusStore | None = None,
        storage: FileStorage | None = None,
    ):
        self.settings = settings
        self.store = store or JobStatusStore(retention=settings.status_retention)
        self.storage = storage or FileStorage(settings.uploads_dir)
        self.writer = ChunkWriter(session_factory)

        self._executor: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()
        self._active_jobs: dict[int, _ActiveJob] = {}

    # --------------------------------------------------
    # UPLOAD
    # --------------------------------------------------
    def upload(
        self,
        filename: str | None,
        content: bytes | None,
        caller: CallerIdentity | None = None,
    ) -> JobExecution:
        validate_csv_upload(filename, content)
        uploaded_by = caller.username if caller is not None else "anonymous"

        try:
            file_path = self._stage(filename, content)
            parameters = JobParameters(
                file_path=file_path,
                uploaded_by=uploaded_by,
                timestamp=int(time.time() * 1000),
                owner_id=caller.user_id if caller is not None else None,
            )
            return self.launch(parameters)
        except LaunchError as exc:
            logger.error("Failed to start batch job for %s: %s", uploaded_by, exc)
            return JobExecution(
                job_execution_id=exc.execution_id,
                status=JobStatus.FAILED,
                message=LAUNCH_FAILED_MESSAGE,
                errors=[exc.message],
                uploaded_by=uploaded_by,
            )

    def _stage(self, filename: str | None, content: bytes):
        try:
            return self.storage.stage_batch_file(filename, content)
        except OSError as exc:
            raise LaunchError(f"Could not stage upload: {exc}") from exc

    # --------------------------------------------------
    # LAUNCH
    # --------------------------------------------------
    def launch(self, parameters: JobParameters) -> JobExecution:
        execution_id = self.store.next_id()
        cancel_event = threading.Event()
        runner = JobRunner(
            execution_id=execution_id,
            parameters=parameters,
            settings=self.settings,
            writer=self.writer,
            store=self.store,
            cancel_event=cancel_event,
        )
        initial = runner.publish()

        with self._lock:
            self._active_jobs[execution_id] = _ActiveJob(cancel_event, parameters.owner_id)

        if not self.settings.async_launch:
            try:
                return runner.run()
            finally:
                self._forget(execution_id)

        try:
            future = self._get_executor().submit(runner.run)
        except RuntimeError as exc:
            self._forget(execution_id)
            runner.abort(str(exc))
            raise LaunchError(str(exc), execution_id) from exc

        future.add_done_callback(lambda _: self._forget(execution_id))
        logger.info("Batch job %s queued for %s", execution_id, parameters.uploaded_by)
        return initial

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.settings.max_workers,
                    thread_name_prefix="batch-import",
                )
            return self._executor

    def _forget(self, execution_id: int) -> None:
        with self._lock:
            self._active_jobs.pop(execution_id, None)

    # --------------------------------------------------
    # STATUS / CANCEL
    # --------------------------------------------------
    def status(self, execution_id: int) -> JobExecution:
        return self.store.get(execution_id)

    def cancel(self, execution_id: int, caller: CallerIdentity | None) -> JobExecution:
        """Stop a running job. Only its uploader or an admin may do so; finished jobs are left as they are."""
        with self._lock:
            job = self._active_jobs.get(execution_id)
        if job is not None:
            if not can_modify(job.owner_id, None, caller):
                logger.warning(
                    "SECURITY: cancel of batch job %s refused for %s",
                    execution_id,
                    caller.username if caller else None,
                )
                raise AccessDenied("Only the uploader or an admin can cancel this job")
            job.cancel_event.set()
            logger.info("Cancellation of batch job %s requested by %s", execution_id, caller.username)
        return self.store.get(execution_id)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
            for job in self._active_jobs.values():
                job.cancel_event.set()
        if executor is not None:
            executor.shutdown(wait=wait)
