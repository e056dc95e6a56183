# -*- coding: utf-8 -*-
"""
Error taxonomy for the attempt engine.

Every error carries an HTTP status code and a stable ``error_code`` so the
same classes are raised by the engine, rendered by the API and rebuilt by the
HTTP client on the other side.
"""

from enum import Enum

from fastapi import HTTPException, status


class ErrorCode(str, Enum):
    """Stable error codes."""

    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    GRADING_ERROR = "GRADING_ERROR"


class APIException(HTTPException):
    """Base class for the engine's errors."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: str,
        headers: dict | None = None,
    ):
        """
        Args:
            status_code (int): HTTP status code.
            detail (str): Human readable message.
            error_code (str): Stable error code.
            headers (dict, optional): Extra response headers.
        """
        super().__init__(status_code=status_code, headers=headers)
        self.detail = detail
        self.error_code = error_code

    def __str__(self) -> str:
        return f"{self.status_code} {self.error_code}: {self.detail}"

    @property
    def is_transient(self) -> bool:
        """True when retrying the same request may succeed."""
        return False


class NotFoundError(APIException):
    """Raised when a test, question or attempt does not exist."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str | int = None,
        details: str | None = None,
    ):
        """
        Args:
            resource_type (str): Resource kind (e.g. "Test", "Attempt").
            resource_id (str or int, optional): Resource id.
            details (str, optional): Extra details.
        """
        detail = f"{resource_type} not found"
        if resource_id is not None:
            detail = f"{resource_type} with ID {resource_id} not found"
        if details:
            detail = f"{detail}: {details}"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            error_code=ErrorCode.NOT_FOUND,
        )


class ConflictError(APIException):
    """Raised when a uniqueness constraint is violated."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code=ErrorCode.CONFLICT,
        )


class PermissionDeniedError(APIException):
    """Raised for wrong owner, inactive test or a write to a terminal attempt."""

    def __init__(self, detail: str = "Permission denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code=ErrorCode.PERMISSION_DENIED,
        )


class ValidationError(APIException):
    """Raised when a payload is malformed. Nothing is written."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=422,
            detail=detail,
            error_code=ErrorCode.VALIDATION_ERROR,
        )


class ServiceUnavailableError(APIException):
    """Raised for network and storage failures that may succeed on retry."""

    def __init__(self, detail: str = "Service temporarily unavailable"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            error_code=ErrorCode.SERVICE_UNAVAILABLE,
        )

    @property
    def is_transient(self) -> bool:
        return True


class GradingError(APIException):
    """Raised when a score cannot be computed. The attempt is left untouched."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            error_code=ErrorCode.GRADING_ERROR,
        )


_ERRORS_BY_CODE = {
    ErrorCode.NOT_FOUND: lambda detail: NotFoundError("Resource", details=detail),
    ErrorCode.CONFLICT: ConflictError,
    ErrorCode.PERMISSION_DENIED: PermissionDeniedError,
    ErrorCode.VALIDATION_ERROR: ValidationError,
    ErrorCode.SERVICE_UNAVAILABLE: ServiceUnavailableError,
    ErrorCode.GRADING_ERROR: GradingError,
}

_ERRORS_BY_STATUS = {
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
    status.HTTP_409_CONFLICT: ErrorCode.CONFLICT,
    status.HTTP_403_FORBIDDEN: ErrorCode.PERMISSION_DENIED,
    status.HTTP_400_BAD_REQUEST: ErrorCode.VALIDATION_ERROR,
    422: ErrorCode.VALIDATION_ERROR,
    status.HTTP_502_BAD_GATEWAY: ErrorCode.SERVICE_UNAVAILABLE,
    status.HTTP_503_SERVICE_UNAVAILABLE: ErrorCode.SERVICE_UNAVAILABLE,
    status.HTTP_504_GATEWAY_TIMEOUT: ErrorCode.SERVICE_UNAVAILABLE,
}


def error_from_response(
    status_code: int, detail: str, error_code: str | None = None
) -> APIException:
    """
    Rebuild an engine error from an HTTP error response.

    The ``error_code`` from the body wins; otherwise the status code decides.
    Unknown 5xx responses are treated as transient.
    """
    code = None
    if error_code:
        try:
            code = ErrorCode(error_code)
        except ValueError:
            code = None
    if code is None:
        code = _ERRORS_BY_STATUS.get(status_code)
    if code is None:
        if status_code >= 500:
            code = ErrorCode.SERVICE_UNAVAILABLE
        else:
            return APIException(status_code, detail, "HTTP_ERROR")
    return _ERRORS_BY_CODE[code](detail)
