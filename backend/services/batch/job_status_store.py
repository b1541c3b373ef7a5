import itertools
import logging
import threading

from models.job_execution import JobExecution

logger = logging.getLogger(__name__)


class JobStatusStore:
    """
    In-process registry of job execution snapshots keyed by execution id.

    Snapshots are copied on the way in and on the way out, so callers never
    share an object with the runner that is still updating its job. When
    `retention` is positive, the oldest finished snapshots are evicted once
    the store holds more than `retention` entries; running jobs are kept.
    """

    def __init__(self, retention: int = 0):
        self.retention = retention
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._executions: dict[int, JobExecution] = {}

    def next_id(self) -> int:
        with self._lock:
            return next(self._ids)

    def record(self, execution: JobExecution) -> None:
        if execution.job_execution_id is None:
            raise ValueError("Cannot record a job execution without an id")

        snapshot = execution.model_copy(deep=True)
        with self._lock:
            current = self._executions.get(snapshot.job_execution_id)
            if current is not None and current.is_terminal:
                logger.warning(
                    "Ignoring update for finished job execution %s (status=%s)",
                    snapshot.job_execution_id,
                    current.status.value,
                )
                return
            self._executions[snapshot.job_execution_id] = snapshot
            self._evict_locked()

    def get(self, execution_id: int) -> JobExecution:
        with self._lock:
            current = self._executions.get(execution_id)
            if current is None:
                return JobExecution.not_found(execution_id)
            return current.model_copy(deep=True)

    def __contains__(self, execution_id: int) -> bool:
        with self._lock:
            return execution_id in self._executions

    def __len__(self) -> int:
        with self._lock:
            return len(self._executions)

    def _evict_locked(self) -> None:
        if self.retention <= 0 or len(self._executions) <= self.retention:
            return

        for execution_id in list(self._executions):
            if len(self._executions) <= self.retention:
                break
            if self._executions[execution_id].is_terminal:
                del self._executions[execution_id]
                logger.debug("Evicted job execution %s from status store", execution_id)
