import logging
import os
import re
import uuid
from pathlib import Path

from services.exceptions import ValidationError

logger = logging.getLogger(__name__)

MAX_IMAGE_SIZE_BYTES = int(os.getenv("MAX_IMAGE_SIZE_BYTES", str(5 * 1024 * 1024)))
SAFE_BATCH_EXTENSIONS = (".csv", ".txt", ".data")
DEFAULT_BATCH_EXTENSION = ".csv"
PUBLIC_PREFIX = "/uploads/"

_IMAGE_EXTENSION_RE = re.compile(r"^\.[A-Za-z0-9]{1,10}$")


def _extension(filename: str | None) -> str:
    if not filename or "." not in filename:
        return ""
    return filename[filename.rindex(".") :]


def safe_batch_extension(filename: str | None) -> str:
    ext = _extension(filename).lower()
    if ext not in SAFE_BATCH_EXTENSIONS:
        return DEFAULT_BATCH_EXTENSION
    return ext


class FileStorage:
    """Writes uploads under a single root directory with generated names."""

    def __init__(self, root: str | Path, max_image_size: int = MAX_IMAGE_SIZE_BYTES):
        self.root = Path(root).resolve()
        self.max_image_size = max_image_size
        self.root.mkdir(parents=True, exist_ok=True)

    @property
    def batch_dir(self) -> Path:
        return self.root / "batch"

    def _write(self, directory: Path, name: str, content: bytes) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        target = (directory / name).resolve()
        if not target.is_relative_to(directory.resolve()):
            raise ValidationError("Invalid file path")

        with open(target, "xb") as handle:
            handle.write(content)
        logger.info("Saved uploaded file: %s (%s bytes)", target, len(content))
        return target

    def stage_batch_file(self, original_filename: str | None, content: bytes) -> Path:
        name = f"{uuid.uuid4()}{safe_batch_extension(original_filename)}"
        return self._write(self.batch_dir, name, content)

    def store_image(self, original_filename: str | None, content: bytes, content_type: str | None) -> str:
        if not content:
            raise ValidationError("File is empty")

        if len(content) > self.max_image_size:
            logger.error(
                "Image upload rejected - size exceeds limit - filename=%s size=%s limit=%s",
                original_filename,
                len(content),
                self.max_image_size,
            )
            raise ValidationError(f"File too large. Max {self.max_image_size // (1024 * 1024)}MB")

        if not content_type or not content_type.lower().startswith("image/"):
            logger.error(
                "Image upload rejected - invalid content type - filename=%s content_type=%s",
                original_filename,
                content_type,
            )
            raise ValidationError("Invalid file type. Only images allowed")

        ext = _extension(original_filename)
        if not _IMAGE_EXTENSION_RE.match(ext):
            ext = ""
        name = f"{uuid.uuid4().hex}{ext}"
        self._write(self.root, name, content)
        return PUBLIC_PREFIX + name

    def delete_public(self, public_path: str | None) -> bool:
        if not public_path or not public_path.startswith(PUBLIC_PREFIX):
            return False
        target = (self.root / public_path[len(PUBLIC_PREFIX) :]).resolve()
        if not target.is_relative_to(self.root) or not target.is_file():
            return False
        target.unlink()
        return True
