"""
Typed error taxonomy shared by the domain, service and RPC layers.

Every error that may reach a caller is an ``AppError``: it has a
machine-readable ``code``, the HTTP status the transport answers with, a
human-readable message and an optional ``data`` payload that is safe to
serialise.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(str, Enum):
    """Machine-readable error kinds exposed to callers."""
    BAD_REQUEST = "BAD_REQUEST"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    TIMEOUT = "TIMEOUT"
    TOO_MANY_REQUESTS = "TOO_MANY_REQUESTS"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


HTTP_STATUS_BY_CODE: Dict[ErrorCode, int] = {
    ErrorCode.BAD_REQUEST: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.TIMEOUT: 408,
    ErrorCode.CONFLICT: 409,
    ErrorCode.TOO_MANY_REQUESTS: 429,
    ErrorCode.INTERNAL_SERVER_ERROR: 500,
}


class AppError(Exception):
    """Base class for errors that carry a typed, serialisable shape."""

    code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR

    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.data: Dict[str, Any] = data or {}

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_CODE[self.code]

    def to_payload(self, path: Optional[str] = None) -> Dict[str, Any]:
        """Shape sent across the transport boundary."""
        data: Dict[str, Any] = {
            "code": self.code.value,
            "httpStatus": self.http_status,
        }
        if path is not None:
            data["path"] = path
        data.update(self.data)
        return {
            "message": self.message,
            "code": self.code.value,
            "data": data,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class BadRequestError(AppError):
    """Input failed validation."""

    code = ErrorCode.BAD_REQUEST

    def __init__(self, message: str = "Invalid input", issues: Optional[List[Dict[str, Any]]] = None):
        self.issues: List[Dict[str, Any]] = issues or []
        super().__init__(message, {"issues": self.issues} if self.issues else None)


class UnauthorizedError(AppError):
    code = ErrorCode.UNAUTHORIZED

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class NotFoundError(AppError):
    code = ErrorCode.NOT_FOUND


class ConflictError(AppError):
    """Uniqueness or state-transition violation."""

    code = ErrorCode.CONFLICT


class TooManyRequestsError(AppError):
    code = ErrorCode.TOO_MANY_REQUESTS

    def __init__(self, message: str, retry_after: int):
        self.retry_after = retry_after
        super().__init__(message, {"retryAfter": retry_after})


class RequestTimeoutError(AppError):
    code = ErrorCode.TIMEOUT


class InternalServerError(AppError):
    """Wraps an unanticipated failure; the cause never crosses the transport."""

    code = ErrorCode.INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "An unexpected error occurred", cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
        self.__cause__ = cause

    def to_payload(self, path: Optional[str] = None) -> Dict[str, Any]:
        payload = super().to_payload(path)
        payload["data"] = {k: v for k, v in payload["data"].items() if k in ("code", "httpStatus", "path")}
        return payload


# --- User domain ---

class InvalidUserDataError(BadRequestError):
    """An entity mutation was rejected by an invariant."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message, issues=[{"path": [field], "message": message, "type": "value_error"}])


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User with ID {user_id} not found")


class UserAlreadyExistsError(ConflictError):
    def __init__(self, email: str):
        self.email = email
        super().__init__("User with this email already exists")


class UserAlreadyDeletedError(ConflictError):
    def __init__(self) -> None:
        super().__init__("User is already deleted")


class UserNotDeletedError(ConflictError):
    def __init__(self) -> None:
        super().__init__("User is not deleted")


# --- Storage ---

class UniqueViolationError(Exception):
    """Raised by repositories when a uniqueness constraint rejects a write."""

    def __init__(self, field: str, value: Any = None):
        super().__init__(f"Unique constraint violated on {field}")
        self.field = field
        self.value = value
