import csv
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from models.job_execution import JobExecution, JobStatus, STATUS_MESSAGES
from models.product import Product
from services.batch.chunk_writer import ChunkWriter
from services.batch.config import BatchSettings
from services.batch.csv_reader import ParseFailure, read_records
from services.batch.job_status_store import JobStatusStore
from services.batch.record_mapper import to_product
from services.batch.records import RawRecord, ValidatedRecord
from services.batch.validator import validate_record
from services.exceptions import PersistenceError, SkipLimitExceeded

logger = logging.getLogger(__name__)


class RunnerState(str, Enum):
    CREATED = "CREATED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    STOPPED = "STOPPED"


_STATE_TO_STATUS = {
    RunnerState.CREATED: JobStatus.STARTED,
    RunnerState.RUNNING: JobStatus.STARTED,
    RunnerState.COMPLETED: JobStatus.COMPLETED,
    RunnerState.FAILED: JobStatus.FAILED,
    RunnerState.STOPPED: JobStatus.STOPPED,
}

_TRANSITIONS = {
    RunnerState.CREATED: {RunnerState.RUNNING, RunnerState.FAILED},
    RunnerState.RUNNING: {RunnerState.COMPLETED, RunnerState.FAILED, RunnerState.STOPPED},
}


@dataclass(frozen=True)
class JobParameters:
    file_path: Path
    uploaded_by: str
    timestamp: int
    owner_id: int | None = None


@dataclass
class StepCounters:
    read_count: int = 0
    read_skip_count: int = 0
    process_skip_count: int = 0
    write_skip_count: int = 0
    write_count: int = 0

    @property
    def skip_count(self) -> int:
        return self.read_skip_count + self.process_skip_count + self.write_skip_count

    @property
    def total_records(self) -> int:
        return self.read_count + self.read_skip_count

    @property
    def failure_count(self) -> int:
        return max(0, self.read_count - self.write_count)


class JobRunner:
    """
    Drives one CSV import: read, validate, map and write in chunks.

    Row level problems (unparseable values, failed constraints) are counted as
    skips. A rejected chunk is retried record by record so that only the
    records the database refuses are skipped. Once the skip count goes above the
    configured limit the job fails immediately; rows already committed in
    earlier chunks stay committed. A set `cancel_event` stops the job before
    the next chunk is read.
    """

    def __init__(
        self,
        execution_id: int,
        parameters: JobParameters,
        settings: BatchSettings,
        writer: ChunkWriter,
        store: JobStatusStore,
        cancel_event: threading.Event | None = None,
    ):
        self.execution_id = execution_id
        self.parameters = parameters
        self.settings = settings
        self.writer = writer
        self.store = store
        self.cancel_event = cancel_event or threading.Event()

        self.state = RunnerState.CREATED
        self.counters = StepCounters()
        self.errors: list[str] = []
        self.start_time: datetime | None = None
        self.end_time: datetime | None = None

    # --------------------------------------------------
    # SNAPSHOTS
    # --------------------------------------------------
    def snapshot(self) -> JobExecution:
        status = _STATE_TO_STATUS[self.state]
        return JobExecution(
            job_execution_id=self.execution_id,
            status=status,
            start_time=self.start_time,
            end_time=self.end_time,
            total_records=self.counters.total_records,
            success_count=self.counters.write_count,
            failure_count=self.counters.failure_count,
            skip_count=self.counters.skip_count,
            errors=list(self.errors),
            message=STATUS_MESSAGES[status],
            uploaded_by=self.parameters.uploaded_by,
        )

    def publish(self) -> JobExecution:
        snapshot = self.snapshot()
        self.store.record(snapshot)
        return snapshot

    def _transition(self, target: RunnerState) -> None:
        allowed = _TRANSITIONS.get(self.state, set())
        if target not in allowed:
            raise RuntimeError(f"Illegal job transition {self.state.value} -> {target.value}")
        self.state = target
        if target is RunnerState.RUNNING:
            self.start_time = datetime.now(timezone.utc)
        elif target in (RunnerState.COMPLETED, RunnerState.FAILED, RunnerState.STOPPED):
            self.end_time = datetime.now(timezone.utc)

    def _capture(self, message: str) -> None:
        if len(self.errors) < self.settings.max_errors:
            self.errors.append(message)

    # --------------------------------------------------
    # RUN
    # --------------------------------------------------
    def abort(self, message: str) -> JobExecution:
        """Fail a job that never got to run."""
        self._capture(message)
        self._transition(RunnerState.FAILED)
        return self.publish()

    def run(self) -> JobExecution:
        self._transition(RunnerState.RUNNING)
        self.publish()
        logger.info(
            "Batch job %s started: file=%s uploaded_by=%s",
            self.execution_id,
            self.parameters.file_path,
            self.parameters.uploaded_by,
        )

        try:
            stopped = self._process()
        except SkipLimitExceeded as exc:
            logger.warning("Batch job %s failed: %s", self.execution_id, exc)
            self._capture(str(exc))
            self._transition(RunnerState.FAILED)
        except (OSError, UnicodeDecodeError, csv.Error) as exc:
            logger.error("Batch job %s could not read %s: %s", self.execution_id, self.parameters.file_path, exc)
            self._capture(f"Failed to read input file: {exc}")
            self._transition(RunnerState.FAILED)
        except Exception as exc:
            logger.exception("Batch job %s failed unexpectedly", self.execution_id)
            self._capture(str(exc) or exc.__class__.__name__)
            self._transition(RunnerState.FAILED)
        else:
            self._transition(RunnerState.STOPPED if stopped else RunnerState.COMPLETED)

        snapshot = self.publish()
        logger.info(
            "Batch job %s finished: status=%s read=%s written=%s skipped=%s",
            self.execution_id,
            snapshot.status.value,
            snapshot.total_records,
            snapshot.success_count,
            snapshot.skip_count,
        )
        return snapshot

    def _process(self) -> bool:
        """Returns True when the job was cancelled before reaching the end of input."""
        pending: list[RawRecord | ParseFailure] = []
        for item in read_records(self.parameters.file_path):
            if not pending and self.cancel_event.is_set():
                logger.info("Batch job %s cancelled", self.execution_id)
                return True
            pending.append(item)
            if len(pending) >= self.settings.chunk_size:
                self._process_chunk(pending)
                pending = []

        if pending:
            self._process_chunk(pending)
        return False

    def _process_chunk(self, items: list[RawRecord | ParseFailure]) -> None:
        valid: list[tuple[int, ValidatedRecord]] = []
        for item in items:
            if isinstance(item, ParseFailure):
                self.counters.read_skip_count += 1
                self._skip(item.message)
                continue

            self.counters.read_count += 1
            outcome = validate_record(item)
            if not outcome.is_valid:
                self.counters.process_skip_count += 1
                self._skip(f"Line {item.line_number}: {'; '.join(outcome.violations)}")
                continue
            valid.append((item.line_number, outcome.record))

        self._write(valid)
        self.publish()

    def _to_products(self, records: list[tuple[int, ValidatedRecord]]) -> list[Product]:
        return [to_product(record, owner_id=self.parameters.owner_id) for _, record in records]

    def _write(self, records: list[tuple[int, ValidatedRecord]]) -> None:
        """Write a chunk; if it is rejected, write its records one by one and skip only the failures."""
        if not records:
            return
        try:
            self.counters.write_count += self.writer.write(self._to_products(records))
            return
        except PersistenceError as exc:
            if len(records) == 1:
                self.counters.write_skip_count += 1
                self._skip(f"Line {records[0][0]}: {exc}")
                return
            logger.warning(
                "Batch job %s: chunk of %s records rejected, retrying one at a time: %s",
                self.execution_id,
                len(records),
                exc,
            )

        for line_number, record in records:
            try:
                self.counters.write_count += self.writer.write(self._to_products([(line_number, record)]))
            except PersistenceError as exc:
                self.counters.write_skip_count += 1
                self._skip(f"Line {line_number}: {exc}")

    def _skip(self, message: str) -> None:
        logger.debug("Batch job %s skipped record: %s", self.execution_id, message)
        self._capture(message)
        if self.counters.skip_count > self.settings.skip_limit:
            raise SkipLimitExceeded(self.counters.skip_count, self.settings.skip_limit)
