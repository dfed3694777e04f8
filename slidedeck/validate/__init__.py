"""
Upload validation for slide deck conversion.

Two levels of checks:
- validate_upload() rejects requests outright (missing file, wrong
  extension, oversize). These become 400 responses with no side effects.
- check_document_structure() inspects the saved file and only reports
  warnings; a malformed deck still goes through the conversion chain.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

from ..config import ALLOWED_EXTENSIONS, MAX_UPLOAD_BYTES
from ..utils.error_handling import ErrorCode
from .base_validator import ValidationError

logger = logging.getLogger(__name__)


class FileValidator:
    """Factory class for format validators."""

    def __init__(self):
        from .formats import key, ppt, pptx

        self._validator_classes = {
            'pptx': pptx.PPTXValidator,
            'ppt': ppt.PPTValidator,
            'key': key.KeynoteValidator,
        }

    @property
    def formats(self) -> List[str]:
        return sorted(self._validator_classes)

    def validate_file(self, file_path: Union[str, Path], expected_format: str, **options) -> List[str]:
        """
        Validate a file against its expected format.

        Returns:
            Warnings collected by the validator

        Raises:
            ValidationError: If validation fails
            ValueError: If format is not supported
        """
        validator_class = self._validator_classes.get(expected_format.lower().lstrip("."))
        if not validator_class:
            raise ValueError(f"Unsupported format: {expected_format}")

        validator = validator_class()
        validator.validate_file(file_path, **options)
        return list(validator.warnings)


_validator = None


def get_validator() -> FileValidator:
    """Get the global file validator instance."""
    global _validator
    if _validator is None:
        _validator = FileValidator()
    return _validator


def validate_upload(filename: Optional[str], size: Optional[int] = None,
                    max_bytes: int = MAX_UPLOAD_BYTES) -> str:
    """
    Check the request-level constraints of an upload.

    Args:
        filename: Client-supplied filename (None or empty when no file was sent)
        size: Size in bytes if already known
        max_bytes: Upload size limit

    Returns:
        The lower-cased extension, including the dot

    Raises:
        ValidationError: With MISSING_FILE, INVALID_FORMAT or FILE_TOO_LARGE
    """
    if not filename:
        raise ValidationError("No file uploaded", error_code=ErrorCode.MISSING_FILE)

    extension = Path(filename).suffix.lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            "Only PowerPoint and Keynote files are allowed",
            details={"extension": extension, "allowed": list(ALLOWED_EXTENSIONS)},
            error_code=ErrorCode.INVALID_FORMAT,
        )

    if size is not None and size > max_bytes:
        raise ValidationError(
            f"File too large: {size} bytes (limit {max_bytes})",
            details={"size": size, "limit": max_bytes},
            error_code=ErrorCode.FILE_TOO_LARGE,
        )

    return extension


def check_document_structure(file_path: Union[str, Path], extension: str) -> List[str]:
    """
    Inspect an uploaded deck and return structural warnings.

    Never raises: a validation failure is reported as a warning so the
    conversion chain still gets a chance to handle the file.
    """
    try:
        warnings = get_validator().validate_file(file_path, extension)
    except ValidationError as e:
        logger.warning(f"Upload {Path(file_path).name} failed {extension} structure check: {e}")
        return [str(e)]
    except ValueError as e:
        logger.debug(f"No structure check for {extension}: {e}")
        return []
    except Exception as e:
        logger.exception(f"Structure check of {Path(file_path).name} crashed: {e}")
        return [f"Structure check failed: {e}"]

    for warning in warnings:
        logger.info(f"Structure warning for {Path(file_path).name}: {warning}")
    return warnings


__all__ = [
    "FileValidator",
    "ValidationError",
    "check_document_structure",
    "get_validator",
    "validate_upload",
]
