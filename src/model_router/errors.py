from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    AUTHENTICATION = "authentication"
    API = "api"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class ProviderError(Exception):
    """Base error for routing and provider failures."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    user_message: str = "An unexpected error occurred. Please try again."
    retryable: bool = False


class NetworkError(ProviderError):
    kind = ErrorKind.NETWORK
    user_message = "Could not connect to the model server."
    retryable = True


class RequestTimeoutError(ProviderError):
    """The call was cancelled because its deadline fired."""

    kind = ErrorKind.TIMEOUT
    user_message = "The model server took too long to respond."
    retryable = True


class AuthenticationError(ProviderError):
    kind = ErrorKind.AUTHENTICATION
    user_message = "Authentication failed. Check your API credentials."


class ApiError(ProviderError):
    """Non-2xx upstream status, or a malformed / empty success body."""

    kind = ErrorKind.API
    user_message = "The model API request failed."

    def __init__(self, message: str = "API request failed", *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ValidationError(ProviderError):
    """Unresolvable model, unsupported capability or missing field."""

    kind = ErrorKind.VALIDATION
    user_message = "The request is invalid."


class UnknownError(ProviderError):
    pass


@dataclass(frozen=True)
class ErrorClassification:
    kind: ErrorKind
    user_message: str
    technical_message: str
    retryable: bool


def classify_error(exc: BaseException) -> ErrorClassification:
    if isinstance(exc, ProviderError):
        return ErrorClassification(
            kind=exc.kind,
            user_message=exc.user_message,
            technical_message=str(exc) or exc.__class__.__name__,
            retryable=exc.retryable,
        )
    return ErrorClassification(
        kind=ErrorKind.UNKNOWN,
        user_message=UnknownError.user_message,
        technical_message=str(exc) or exc.__class__.__name__,
        retryable=False,
    )
