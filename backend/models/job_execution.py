from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class JobStatus(str, Enum):
    STARTED = "STARTED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    STOPPED = "STOPPED"
    NOT_FOUND = "NOT_FOUND"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.STOPPED})

STATUS_MESSAGES = {
    JobStatus.STARTED: "Batch processing in progress",
    JobStatus.COMPLETED: "Batch processing completed",
    JobStatus.FAILED: "Batch processing failed",
    JobStatus.STOPPED: "Batch processing stopped",
    JobStatus.NOT_FOUND: "Job execution not found",
}


class JobExecution(BaseModel):
    """Status snapshot of one import run, as returned to callers."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    job_execution_id: int | None = None
    status: JobStatus
    start_time: datetime | None = None
    end_time: datetime | None = None
    total_records: int = 0
    success_count: int = 0
    failure_count: int = 0
    skip_count: int = 0
    errors: list[str] = Field(default_factory=list)
    message: str | None = None
    uploaded_by: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def not_found(cls, job_execution_id: int | None) -> "JobExecution":
        return cls(
            job_execution_id=job_execution_id,
            status=JobStatus.NOT_FOUND,
            message=STATUS_MESSAGES[JobStatus.NOT_FOUND],
        )
