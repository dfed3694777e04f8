"""
Per-request scratch workspace management.

Every conversion request gets its own directory under the configured work
root. It holds the uploaded source file, the intermediate PDF, raw renderer
output and the private LibreOffice profile. The directory is removed when
the request ends, whichever conversion path completed:
- Unique directory per request
- Upload streaming with a size cap
- Best-effort cleanup (errors are logged, never raised)
- Context manager support
"""

import re
import shutil
import uuid
import weakref
from pathlib import Path
from typing import Optional, Union

from ..config import DEFAULT_WORK_DIR, UPLOAD_CHUNK_SIZE
from .logging_config import get_logger

logger = get_logger()

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class TempFileError(Exception):
    """Custom exception for scratch workspace operations."""
    pass


class UploadTooLargeError(TempFileError):
    """Raised when an upload exceeds the configured size limit."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"File too large: more than {limit} bytes")
        self.size = size
        self.limit = limit


def safe_filename(filename: Optional[str], default: str = "upload") -> str:
    """Reduce a client-supplied filename to a safe basename."""
    name = Path(filename or "").name
    name = _UNSAFE_FILENAME_CHARS.sub("_", name).strip("._")
    return name or default


class TempWorkspace:
    """
    Scratch directory for a single conversion request.

    The directory is created eagerly and removed by cleanup(), on context
    exit, or when the object is garbage collected.
    """

    def __init__(self, base_dir: Union[str, Path] = DEFAULT_WORK_DIR, prefix: str = "job"):
        self.base_dir = Path(base_dir)
        self.path = self.base_dir / f"{prefix}_{uuid.uuid4().hex[:12]}"
        self.upload_path: Optional[Path] = None

        try:
            self.path.mkdir(parents=True, exist_ok=False)
        except OSError as e:
            logger.error(f"Failed to create workspace {self.path}: {e}")
            raise TempFileError(f"Failed to create workspace: {str(e)}")

        self._finalizer = weakref.finalize(self, _remove_tree, self.path)
        logger.debug(f"Created workspace: {self.path}")

    async def save_upload(self, upload, max_bytes: int) -> Path:
        """
        Stream an uploaded file into the workspace.

        Args:
            upload: FastAPI UploadFile (anything with an async read(size))
            max_bytes: Maximum accepted size

        Returns:
            Path to the saved file

        Raises:
            UploadTooLargeError: If the upload is larger than max_bytes
            TempFileError: If the file cannot be written
        """
        target = self.path / safe_filename(upload.filename)
        written = 0
        try:
            with open(target, "wb") as f:
                while True:
                    chunk = await upload.read(UPLOAD_CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > max_bytes:
                        raise UploadTooLargeError(written, max_bytes)
                    f.write(chunk)
        except UploadTooLargeError:
            _remove_file(target)
            raise
        except OSError as e:
            logger.error(f"Failed to save upload to {target}: {e}")
            _remove_file(target)
            raise TempFileError(f"Failed to save upload: {str(e)}")

        logger.info(f"Saved upload {upload.filename} ({written} bytes) to {target}")
        self.upload_path = target
        return target

    def cleanup(self) -> None:
        """Remove the workspace directory."""
        if self._finalizer.detach() is not None:
            _remove_tree(self.path)

    @property
    def exists(self) -> bool:
        return self.path.exists()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cleanup()

    def __repr__(self):
        return f"TempWorkspace(path={self.path})"


def _remove_file(path: Path) -> None:
    try:
        if path.exists():
            path.unlink()
    except OSError as e:
        logger.warning(f"Failed to cleanup temp file {path}: {e}")


def _remove_tree(path: Path) -> None:
    try:
        if path.exists():
            shutil.rmtree(path)
            logger.debug(f"Cleaned up workspace: {path}")
    except OSError as e:
        logger.warning(f"Failed to cleanup workspace {path}: {e}")


def remove_directory(path: Union[str, Path]) -> bool:
    """Remove a directory tree, logging instead of raising. Returns True if it is gone."""
    path = Path(path)
    _remove_tree(path)
    return not path.exists()
