"""
Base file validator classes for slide deck uploads.

Format validators inspect the uploaded bytes before they are handed to the
renderer. Their findings are advisory for the conversion pipeline: a deck
that looks malformed is still converted (the chain degrades to placeholders),
but the problem is logged.
"""

import io
import logging
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from ..utils.error_handling import ErrorCode

# Upper bound on bytes inflated from a single archive member
MAX_ENTRY_READ_BYTES = 1024 * 1024

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Raised when an upload or its content fails validation."""

    def __init__(self, message: str, format_type: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None,
                 error_code: ErrorCode = ErrorCode.INVALID_FORMAT):
        super().__init__(message)
        self.format_type = format_type
        self.details = details or {}
        self.error_code = error_code


class BaseFileValidator(ABC):
    """
    Base class for slide deck format validators.

    Subclasses implement _validate_content() and raise ValidationError for
    content that cannot be the declared format. Non-fatal oddities are
    collected in self.warnings.
    """

    def __init__(self, format_name: str):
        self.format_name = format_name
        self.warnings: List[str] = []
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def validate_file(self, file_path: Union[str, Path], **options) -> bool:
        """
        Validate a file on disk.

        Returns:
            True if validation passes

        Raises:
            ValidationError: If validation fails
        """
        file_path = Path(file_path)
        self.warnings = []

        self._check_file_exists(file_path)
        self._check_file_size(file_path)

        content = self._read_file_content(file_path)
        return self._validate_content(content, **options)

    def warn(self, message: str) -> None:
        self.logger.warning(message)
        self.warnings.append(message)

    def _check_file_exists(self, file_path: Path) -> None:
        if not file_path.exists():
            raise ValidationError(
                f"File does not exist: {file_path}",
                format_type=self.format_name,
                error_code=ErrorCode.MISSING_FILE,
            )

    def _check_file_size(self, file_path: Path) -> None:
        file_size = file_path.stat().st_size
        if file_size == 0:
            raise ValidationError(
                "File is empty (size 0)",
                format_type=self.format_name,
                details={"file_size": file_size},
            )

    def _read_file_content(self, file_path: Path) -> bytes:
        try:
            with open(file_path, "rb") as f:
                return f.read()
        except OSError as e:
            raise ValidationError(
                f"Failed to read file: {e}",
                format_type=self.format_name,
                details={"read_error": str(e)},
            )

    @abstractmethod
    def _validate_content(self, content: bytes, **options) -> bool:
        """Perform format-specific content validation."""
        pass


class BinaryBasedValidator(BaseFileValidator):
    """Validator for formats identified by a leading magic signature."""

    def __init__(self, format_name: str, signature: bytes):
        super().__init__(format_name)
        self.signature = signature

    def _validate_signature(self, content: bytes) -> None:
        if not content.startswith(self.signature):
            raise ValidationError(
                f"File does not look like a {self.format_name.upper()} document",
                format_type=self.format_name,
                details={"header": content[:8].hex()},
            )


class ArchiveBasedValidator(BaseFileValidator):
    """Validator for ZIP-packaged formats."""

    def __init__(self, format_name: str, required_files: Sequence[str] = ()):
        super().__init__(format_name)
        self.required_files = list(required_files)

    def _open_archive(self, content: bytes) -> zipfile.ZipFile:
        try:
            return zipfile.ZipFile(io.BytesIO(content), "r")
        except zipfile.BadZipFile as e:
            raise ValidationError(
                f"Invalid archive file: {e}",
                format_type=self.format_name,
                details={"archive_error": str(e)},
            )

    def _archive_names(self, content: bytes) -> List[str]:
        with self._open_archive(content) as zf:
            return zf.namelist()

    def _validate_required_files(self, namelist: List[str]) -> None:
        missing_files = [name for name in self.required_files if name not in namelist]
        if missing_files:
            raise ValidationError(
                f"Missing required files: {missing_files}",
                format_type=self.format_name,
                details={
                    "missing_files": missing_files,
                    "available_files": namelist[:10],
                },
            )

    def _read_entry(self, zf: zipfile.ZipFile, name: str, limit: int = MAX_ENTRY_READ_BYTES) -> bytes:
        """Read at most limit bytes of an archive member."""
        try:
            with zf.open(name) as entry:
                return entry.read(limit)
        except (zipfile.BadZipFile, RuntimeError, NotImplementedError, OSError, KeyError) as e:
            raise ValidationError(
                f"Unreadable archive entry {name}: {e}",
                format_type=self.format_name,
                details={"entry": name, "archive_error": str(e)},
            )
