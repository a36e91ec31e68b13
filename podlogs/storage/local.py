"""Local filesystem storage for archived logs."""

import os
import tempfile
from pathlib import Path

import structlog

from ..errors import SaveError
from .base import StorageObject

logger = structlog.get_logger(__name__)


class LocalStorageClient:
    """Writes each stream to ``<location>/<name>``.

    Data goes to a temporary file beside the target and is renamed into
    place once the stream is drained, so a failed save leaves no artifact.
    Distinct names never share a file, which makes concurrent saves safe.
    """

    def __init__(self, chunk_size: int = 64 * 1024):
        self.chunk_size = chunk_size

    async def save(self, location: str, obj: StorageObject) -> None:
        if not location:
            raise SaveError(obj.name, "storage location is empty")

        directory = Path(location)
        target = directory / obj.name
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{obj.name}.", suffix=".partial", dir=directory)
        except OSError as e:
            raise SaveError(obj.name, f"cannot write to {directory}: {e}") from e

        written = 0
        saved = False
        try:
            with os.fdopen(fd, "wb") as f:
                while True:
                    chunk = await obj.resource.read(self.chunk_size)
                    if not chunk:
                        break
                    f.write(chunk)
                    written += len(chunk)
            os.replace(tmp_name, target)
            saved = True
        except OSError as e:
            raise SaveError(obj.name, f"writing {target} failed: {e}") from e
        finally:
            if not saved:
                Path(tmp_name).unlink(missing_ok=True)

        logger.info("Saved log file", file=str(target), bytes=written)
