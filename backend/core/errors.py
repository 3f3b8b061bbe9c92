from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_HTTP_STATUS = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.AUTH_ERROR: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.INTERNAL_ERROR: 500,
}

ERROR_MESSAGES = {
    ErrorCode.VALIDATION_ERROR: "Validation failed",
    ErrorCode.AUTH_ERROR: "Authentication failed",
    ErrorCode.FORBIDDEN: "Access denied",
    ErrorCode.NOT_FOUND: "Resource not found",
    ErrorCode.CONFLICT: "Resource already exists",
    ErrorCode.RATE_LIMITED: "Too many requests",
    ErrorCode.INTERNAL_ERROR: "Internal server error",
}


class AppError(Exception):
    """Application error carrying an error code and an HTTP status.

    Raised from services and dependencies; the handlers registered in
    ``api.error_handlers`` turn it into the JSON error envelope.
    """

    def __init__(self, code: ErrorCode, message: Optional[str] = None, details: Optional[List[Dict[str, Any]]] = None):
        self.code = code
        self.message = message or ERROR_MESSAGES[code]
        self.details = details or []
        self.status_code = ERROR_HTTP_STATUS[code]
        super().__init__(self.message)

    @classmethod
    def not_found(cls, resource: str = "Resource") -> "AppError":
        return cls(ErrorCode.NOT_FOUND, f"{resource} not found")

    @classmethod
    def conflict(cls, message: str = "Resource already exists") -> "AppError":
        return cls(ErrorCode.CONFLICT, message)

    @classmethod
    def rate_limited(cls, message: Optional[str] = None) -> "AppError":
        return cls(ErrorCode.RATE_LIMITED, message)

    @classmethod
    def internal(cls, message: str = "Internal server error") -> "AppError":
        return cls(ErrorCode.INTERNAL_ERROR, message)


class AuthError(AppError):
    """Authentication failure.

    ``reason`` says what actually went wrong (unknown token, reuse, expiry,
    bad password...) and is only ever logged. Clients always get the same
    opaque message so they cannot probe which case they hit.
    """

    def __init__(self, reason: str = "invalid credentials"):
        super().__init__(ErrorCode.AUTH_ERROR)
        self.reason = reason

    def __str__(self) -> str:
        return self.reason
