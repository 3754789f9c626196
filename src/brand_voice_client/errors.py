from __future__ import annotations

from enum import Enum
from typing import Any

TIMEOUT_MESSAGE = "Request timed out. Please try again."
NETWORK_MESSAGE = "Network connection error. Please check your internet connection."
DATABASE_MESSAGE = "Database connection error. Please try again in a moment."
TRANSIENT_USER_MESSAGE = "Connection problem. Please try again in a moment."

# Retry decisions match on message text, not on error type.
TRANSIENT_PATTERNS: tuple[str, ...] = (
    "Database connection",
    "Network connection",
    "Failed to fetch",
)


class ErrorKind(Enum):
    TIMEOUT = "timeout"
    NETWORK = "network"
    HTTP = "http"
    MALFORMED = "malformed"


class ApiError(Exception):
    kind = ErrorKind.HTTP

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RequestTimeoutError(ApiError):
    kind = ErrorKind.TIMEOUT

    def __init__(self, message: str = TIMEOUT_MESSAGE):
        super().__init__(message)


class NetworkError(ApiError):
    kind = ErrorKind.NETWORK

    def __init__(self, message: str = NETWORK_MESSAGE):
        super().__init__(message)


class HttpError(ApiError):
    kind = ErrorKind.HTTP

    def __init__(self, status: int, message: str, payload: Any = None):
        super().__init__(message)
        self.status = status
        self.payload = payload

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status}, message={self.message!r})"


class MalformedResponseError(HttpError):
    """A response arrived but its body was not the JSON shape the caller expected."""

    kind = ErrorKind.MALFORMED


def is_transient(error: BaseException, patterns: tuple[str, ...] = TRANSIENT_PATTERNS) -> bool:
    message = error.message if isinstance(error, ApiError) else str(error)
    return any(p in message for p in patterns)


def describe_error(error: BaseException) -> str:
    """User-facing text for an error: friendly for connection trouble, verbatim otherwise."""
    if is_transient(error):
        return TRANSIENT_USER_MESSAGE
    if isinstance(error, ApiError):
        return error.message or "An error occurred"
    return str(error) or "An error occurred"
