import pytest

from model_router.errors import (
    ApiError,
    AuthenticationError,
    ErrorKind,
    NetworkError,
    ProviderError,
    RequestTimeoutError,
    UnknownError,
    ValidationError,
    classify_error,
)


@pytest.mark.parametrize(
    "exc, kind, retryable",
    [
        (NetworkError("down"), ErrorKind.NETWORK, True),
        (RequestTimeoutError("slow"), ErrorKind.TIMEOUT, True),
        (AuthenticationError("Invalid API key: 401"), ErrorKind.AUTHENTICATION, False),
        (ApiError("Server error: 500", status_code=500), ErrorKind.API, False),
        (ValidationError("No provider found for model: x"), ErrorKind.VALIDATION, False),
        (UnknownError("?"), ErrorKind.UNKNOWN, False),
    ],
)
def test_classification_of_provider_errors(exc, kind, retryable):
    c = classify_error(exc)
    assert c.kind is kind
    assert c.retryable is retryable
    assert c.technical_message == str(exc)
    assert c.user_message == type(exc).user_message


def test_foreign_exceptions_classify_as_unknown():
    c = classify_error(ZeroDivisionError())
    assert c.kind is ErrorKind.UNKNOWN
    assert c.technical_message == "ZeroDivisionError"
    assert c.retryable is False


def test_api_error_keeps_status_code():
    assert ApiError("x", status_code=429).status_code == 429
    assert ApiError("x").status_code is None


def test_every_error_is_a_provider_error():
    for cls in (NetworkError, RequestTimeoutError, AuthenticationError, ApiError, ValidationError, UnknownError):
        assert issubclass(cls, ProviderError)
