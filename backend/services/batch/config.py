import os
from dataclasses import dataclass
from pathlib import Path


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return int(raw)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class BatchSettings:
    uploads_dir: Path = Path("uploads")
    chunk_size: int = 100
    skip_limit: int = 1000
    async_launch: bool = True
    max_workers: int = 2
    max_errors: int = 100
    status_retention: int = 0  # 0 keeps every snapshot

    def __post_init__(self):
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        if self.skip_limit < 0:
            raise ValueError("skip_limit cannot be negative")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

    @classmethod
    def from_env(cls) -> "BatchSettings":
        return cls(
            uploads_dir=Path(os.getenv("UPLOADS_DIR", "uploads")),
            chunk_size=_env_int("BATCH_CHUNK_SIZE", 100),
            skip_limit=_env_int("BATCH_SKIP_LIMIT", 1000),
            async_launch=_env_flag("BATCH_ASYNC", True),
            max_workers=_env_int("BATCH_MAX_WORKERS", 2),
            max_errors=_env_int("BATCH_MAX_ERRORS", 100),
            status_retention=_env_int("BATCH_STATUS_RETENTION", 0),
        )
