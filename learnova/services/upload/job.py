"""Transient upload jobs and their temporary files."""

import os
import secrets
import tempfile
import time
from pathlib import Path
from types import TracebackType
from typing import Self

from learnova.utils.logger import get_logger

logger = get_logger(__name__)


def new_public_id() -> str:
    """Destination object name, timestamp plus enough randomness that concurrent jobs never collide."""
    return f"video_{int(time.time())}_{secrets.token_hex(8)}"


class UploadJob:
    """A spooled upload, owns its temporary file until released.

    Using the job as a context manager releases the file on exit no matter
    how the block ends.
    """

    def __init__(self, source_path: Path, declared_media_type: str, public_id: str, size_bytes: int = 0) -> None:
        self.source_path = source_path
        self.declared_media_type = declared_media_type
        self.public_id = public_id
        self.size_bytes = size_bytes
        self.released = False

    @classmethod
    def allocate(cls, temp_dir: Path, declared_media_type: str) -> Self:
        """Create the temporary file for a new job."""
        public_id = new_public_id()
        temp_dir.mkdir(parents=True, exist_ok=True)
        fd, path = tempfile.mkstemp(prefix=f"{public_id}_", suffix=".part", dir=temp_dir)
        os.close(fd)
        logger.trace("Allocated upload temp file %s", path)
        return cls(source_path=Path(path), declared_media_type=declared_media_type, public_id=public_id)

    def release(self) -> None:
        """Remove the temporary file, safe to call more than once."""
        if self.released:
            return

        self.source_path.unlink(missing_ok=True)
        self.released = True
        logger.trace("Released upload temp file %s", self.source_path)

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.release()

    def __repr__(self) -> str:
        return f"UploadJob(public_id={self.public_id!r}, size_bytes={self.size_bytes}, released={self.released})"
