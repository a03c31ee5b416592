"""
API error codes and the exception that carries them to the client.

Every failed request is answered with `{"success": false, "message", "code"}`,
rendered from an `APIError` by the handler registered in `main.py`.
"""
import enum
from typing import Optional

from fastapi import status


class ErrorCode(str, enum.Enum):
    """Closed set of error codes returned to clients."""
    # Request gate
    MISSING_AUTH_HEADER = "MISSING_AUTH_HEADER"
    NO_TOKEN_PROVIDED = "NO_TOKEN_PROVIDED"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    TOKEN_REVOKED = "TOKEN_REVOKED"
    AUTH_ERROR = "AUTH_ERROR"

    # Session lifecycle
    MISSING_REQUIRED_FIELDS = "MISSING_REQUIRED_FIELDS"
    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"
    MISSING_REFRESH_TOKEN = "MISSING_REFRESH_TOKEN"
    INVALID_ROLE = "INVALID_ROLE"
    EMAIL_IN_USE = "EMAIL_IN_USE"
    WEAK_PASSWORD = "WEAK_PASSWORD"
    REGISTRATION_FAILED = "REGISTRATION_FAILED"
    LOGIN_FAILED = "LOGIN_FAILED"
    INVALID_USER = "INVALID_USER"
    LOGOUT_FAILED = "LOGOUT_FAILED"
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    REFRESH_TOKEN_EXPIRED = "REFRESH_TOKEN_EXPIRED"
    REFRESH_TOKEN_REVOKED = "REFRESH_TOKEN_REVOKED"

    # Profile
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    INVALID_DOCUMENTS_FORMAT = "INVALID_DOCUMENTS_FORMAT"
    INVALID_DOCUMENT_FORMAT = "INVALID_DOCUMENT_FORMAT"

    # Generic
    VALIDATION_ERROR = "VALIDATION_ERROR"
    SERVER_ERROR = "SERVER_ERROR"


class APIError(Exception):
    """Exception rendered as an error response with a stable code."""

    def __init__(self, status_code: int, code: ErrorCode, message: str, headers: Optional[dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.headers = headers

    def to_dict(self) -> dict:
        return {"success": False, "message": self.message, "code": self.code.value}


# PUBLIC_INTERFACE
def unauthorized(code: ErrorCode, message: str) -> APIError:
    """Build a 401 error carrying the Bearer challenge header."""
    return APIError(
        status.HTTP_401_UNAUTHORIZED,
        code,
        message,
        headers={"WWW-Authenticate": "Bearer"},
    )


# PUBLIC_INTERFACE
def bad_request(code: ErrorCode, message: str) -> APIError:
    return APIError(status.HTTP_400_BAD_REQUEST, code, message)


# PUBLIC_INTERFACE
def server_error(code: ErrorCode, message: str = "Server error") -> APIError:
    return APIError(status.HTTP_500_INTERNAL_SERVER_ERROR, code, message)
