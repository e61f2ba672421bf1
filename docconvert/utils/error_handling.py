"""
Centralized error handling for the docconvert service.

This module defines the error codes, their HTTP status and severity mappings,
the exception types raised by converters and routes, and the helper that
renders them as JSON responses.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional, Union

from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for consistent error handling."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_ACCEPTABLE = "NOT_ACCEPTABLE"
    UNSUPPORTED_MEDIA_TYPE = "UNSUPPORTED_MEDIA_TYPE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"

    # Conversion errors
    INVALID_FILE = "INVALID_FILE"
    CONVERTER_UNAVAILABLE = "CONVERTER_UNAVAILABLE"
    CONVERTER_TIMEOUT = "CONVERTER_TIMEOUT"
    CONVERTER_FAILED = "CONVERTER_FAILED"
    TEMP_STORAGE_ERROR = "TEMP_STORAGE_ERROR"


class ErrorSeverity(str, Enum):
    """Error severity levels for logging and response handling."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


ERROR_STATUS_MAP: Dict[ErrorCode, int] = {
    # 4xx Client Errors
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.INVALID_FILE: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.NOT_ACCEPTABLE: 406,
    ErrorCode.FILE_TOO_LARGE: 413,
    ErrorCode.UNSUPPORTED_MEDIA_TYPE: 415,

    # 5xx Server Errors
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.CONVERTER_FAILED: 500,
    ErrorCode.TEMP_STORAGE_ERROR: 500,
    ErrorCode.CONVERTER_UNAVAILABLE: 503,
    ErrorCode.CONVERTER_TIMEOUT: 504,
}

ERROR_SEVERITY_MAP: Dict[ErrorCode, ErrorSeverity] = {
    ErrorCode.INTERNAL_ERROR: ErrorSeverity.CRITICAL,
    ErrorCode.TEMP_STORAGE_ERROR: ErrorSeverity.CRITICAL,
    ErrorCode.CONVERTER_UNAVAILABLE: ErrorSeverity.HIGH,
    ErrorCode.CONVERTER_FAILED: ErrorSeverity.HIGH,
    ErrorCode.CONVERTER_TIMEOUT: ErrorSeverity.MEDIUM,
    ErrorCode.UNAUTHORIZED: ErrorSeverity.MEDIUM,
    ErrorCode.INVALID_REQUEST: ErrorSeverity.LOW,
    ErrorCode.INVALID_FILE: ErrorSeverity.LOW,
    ErrorCode.NOT_FOUND: ErrorSeverity.LOW,
    ErrorCode.NOT_ACCEPTABLE: ErrorSeverity.LOW,
    ErrorCode.FILE_TOO_LARGE: ErrorSeverity.LOW,
    ErrorCode.UNSUPPORTED_MEDIA_TYPE: ErrorSeverity.LOW,
}


# ===== EXCEPTIONS =====

class ConversionError(Exception):
    """Base class for errors that terminate a conversion request."""

    error_code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, service: Optional[str] = None, error_code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.service = service
        if error_code is not None:
            self.error_code = error_code

    @property
    def status_code(self) -> int:
        return ERROR_STATUS_MAP.get(self.error_code, 500)

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500


class ClientInputError(ConversionError):
    """The external tool rejected the payload as malformed. Never retried."""

    error_code = ErrorCode.INVALID_FILE


class ConversionEnvironmentError(ConversionError):
    """Missing binary, permission problem, crash, timeout or I/O fault.

    Not the caller's fault; reported as a server error.
    """

    error_code = ErrorCode.CONVERTER_FAILED


class UnsupportedMediaTypeError(ConversionError):
    error_code = ErrorCode.UNSUPPORTED_MEDIA_TYPE


class NotAcceptableError(ConversionError):
    error_code = ErrorCode.NOT_ACCEPTABLE


class PayloadTooLargeError(ConversionError):
    error_code = ErrorCode.FILE_TOO_LARGE


class UnauthorizedError(ConversionError):
    error_code = ErrorCode.UNAUTHORIZED


# ===== RESPONSES =====

def create_error_response(
    error_code: Union[ErrorCode, str],
    service: Optional[str] = None,
    details: Optional[str] = None,
    status_code: Optional[int] = None,
    headers: Optional[Dict[str, str]] = None,
    **kwargs
) -> JSONResponse:
    """
    Create a consistent JSON error response across all endpoints.

    Args:
        error_code: Error code from ErrorCode enum or custom string
        service: Converter or component that generated the error
        details: Additional error details (truncated to 1000 chars)
        status_code: Override the default HTTP status code
        headers: Extra response headers
        **kwargs: Additional fields to include in the error body

    Returns:
        JSONResponse with standardized error format
    """
    if isinstance(error_code, ErrorCode):
        error_type = error_code.value
        if status_code is None:
            status_code = ERROR_STATUS_MAP.get(error_code, 500)
        severity = ERROR_SEVERITY_MAP.get(error_code, ErrorSeverity.MEDIUM)
    else:
        error_type = str(error_code)
        if status_code is None:
            status_code = 500
        severity = ErrorSeverity.MEDIUM

    error_data = {
        "error": error_type,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "status_code": status_code,
        "severity": severity.value
    }

    if service:
        error_data["service"] = service

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

    return JSONResponse(status_code=status_code, content=error_data, headers=headers)


def conversion_error_response(error: ConversionError) -> JSONResponse:
    """Render a ConversionError raised anywhere in the request pipeline."""
    headers = None
    if isinstance(error, UnauthorizedError):
        headers = {"WWW-Authenticate": "Bearer"}
    return create_error_response(
        error.error_code,
        service=error.service,
        details=str(error),
        headers=headers
    )
