"""
Centralized error handling for the slide deck service.

This module provides standardized error responses, error codes, and the
mapping from error codes to HTTP status and log severity.
"""

import logging
from enum import Enum
from typing import Dict, Optional, Union

from fastapi.responses import JSONResponse

from .timestamps import utc_timestamp

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for consistent error handling."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    NOT_FOUND = "NOT_FOUND"

    # Upload errors
    MISSING_FILE = "MISSING_FILE"
    INVALID_FORMAT = "INVALID_FORMAT"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"

    # Catalog errors
    DATABASE_ERROR = "DATABASE_ERROR"
    SYNC_FAILED = "SYNC_FAILED"


class ErrorSeverity(str, Enum):
    """Error severity levels for logging and response handling."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Upload rejections are all plain 400s; clients only distinguish by error code.
ERROR_STATUS_MAP: Dict[ErrorCode, int] = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.MISSING_FILE: 400,
    ErrorCode.INVALID_FORMAT: 400,
    ErrorCode.FILE_TOO_LARGE: 400,
    ErrorCode.NOT_FOUND: 404,

    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.DATABASE_ERROR: 500,
    ErrorCode.SYNC_FAILED: 500,
}

ERROR_SEVERITY_MAP: Dict[ErrorCode, ErrorSeverity] = {
    ErrorCode.INTERNAL_ERROR: ErrorSeverity.CRITICAL,
    ErrorCode.DATABASE_ERROR: ErrorSeverity.CRITICAL,
    ErrorCode.SYNC_FAILED: ErrorSeverity.HIGH,
    ErrorCode.INVALID_REQUEST: ErrorSeverity.MEDIUM,
    ErrorCode.MISSING_FILE: ErrorSeverity.LOW,
    ErrorCode.INVALID_FORMAT: ErrorSeverity.LOW,
    ErrorCode.FILE_TOO_LARGE: ErrorSeverity.LOW,
    ErrorCode.NOT_FOUND: ErrorSeverity.LOW,
}

DEFAULT_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.NOT_FOUND: "Presentation not found",
    ErrorCode.MISSING_FILE: "No file uploaded",
    ErrorCode.DATABASE_ERROR: "Failed to save presentation to database",
    ErrorCode.SYNC_FAILED: "Sync failed",
    ErrorCode.INTERNAL_ERROR: "Something went wrong!",
}


def create_error_response(
    error_code: Union[ErrorCode, str],
    details: Optional[str] = None,
    status_code: Optional[int] = None,
    message: Optional[str] = None,
    **kwargs
) -> JSONResponse:
    """
    Create a consistent JSON error response across all endpoints.

    Args:
        error_code: Error code from ErrorCode enum or custom string
        details: Additional error details (will be truncated to 1000 chars)
        status_code: Override the default HTTP status code
        message: Human readable summary; defaults per error code
        **kwargs: Additional fields to include in the error response

    Returns:
        JSONResponse with standardized error format
    """
    if isinstance(error_code, ErrorCode):
        error_type = error_code.value
        if status_code is None:
            status_code = ERROR_STATUS_MAP.get(error_code, 500)
        severity = ERROR_SEVERITY_MAP.get(error_code, ErrorSeverity.MEDIUM)
        message = message or DEFAULT_MESSAGES.get(error_code)
    else:
        error_type = str(error_code)
        if status_code is None:
            status_code = 500
        severity = ErrorSeverity.MEDIUM

    error_data = {
        "error": error_type,
        "timestamp": utc_timestamp(),
        "status_code": status_code,
        "severity": severity.value
    }

    if message:
        error_data["message"] = message

    if details:
        error_data["details"] = str(details)[:1000]

    error_data.update(kwargs)

    log_message = f"Error response: {error_data}"
    if severity == ErrorSeverity.CRITICAL:
        logger.critical(log_message)
    elif severity == ErrorSeverity.HIGH:
        logger.error(log_message)
    elif severity == ErrorSeverity.MEDIUM:
        logger.warning(log_message)
    else:
        logger.info(log_message)

    return JSONResponse(status_code=status_code, content=error_data)


def not_found_response(presentation_id: str) -> JSONResponse:
    """404 body shared by all single-presentation endpoints."""
    return create_error_response(ErrorCode.NOT_FOUND, id=presentation_id)
