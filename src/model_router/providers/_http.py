from __future__ import annotations

import json
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from typing import Any

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from ..errors import ApiError, AuthenticationError, NetworkError, ProviderError, RequestTimeoutError
from ..schemas import CompletionResponse

log = structlog.get_logger()


class ByteStream:
    """
    Pull-based handle over a streaming upstream body.

    The handle owns the open transport: callers must `aclose()` it (or use
    `async with`) on every path, including after a successful read.
    """

    def __init__(
        self,
        chunks: AsyncIterable[bytes],
        *,
        close: Callable[[], Awaitable[None]] | None = None,
        provider: str = "unknown",
    ):
        self._chunks = chunks
        self._close = close
        self.provider = provider
        self._closed = False

    @classmethod
    def from_response(cls, resp: httpx.Response, *, provider: str) -> "ByteStream":
        return cls(resp.aiter_bytes(), close=resp.aclose, provider=provider)

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        if self._closed:
            return
        try:
            async for chunk in self._chunks:
                if self._closed:
                    return
                if chunk:
                    yield chunk
        except httpx.TimeoutException as e:
            raise RequestTimeoutError("Upstream stream read timed out.") from e
        except httpx.HTTPError as e:
            raise NetworkError("Upstream stream was interrupted.") from e

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        aclose = getattr(self._chunks, "aclose", None)
        if callable(aclose):
            await aclose()
        if self._close is not None:
            await self._close()

    async def __aenter__(self) -> "ByteStream":
        return self

    async def __aexit__(self, *_exc: Any) -> None:
        await self.aclose()


def parse_upstream_message(body_text: str) -> str:
    """Best-effort `error.message` from an upstream error body, else the raw text."""
    try:
        data = json.loads(body_text)
    except ValueError:
        return body_text or "Unknown error"
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and isinstance(err.get("message"), str):
            return err["message"]
        if isinstance(err, str) and err:
            return err
        if isinstance(data.get("message"), str):
            return data["message"]
    return body_text or "Unknown error"


def error_for_status(status_code: int, reason: str, body_text: str, *, label: str) -> ProviderError:
    if status_code in (401, 403):
        return AuthenticationError(f"Invalid API key: {status_code}")
    if status_code >= 500:
        return ApiError(f"Server error: {status_code}", status_code=status_code)
    message = parse_upstream_message(body_text)
    return ApiError(f"{label} API error: {status_code} {reason} - {message}", status_code=status_code)


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    label: str,
    timeout: float,
    headers: dict[str, str] | None = None,
    payload: dict[str, Any] | None = None,
    stream: bool = False,
) -> httpx.Response:
    """
    Issue one request and return a 2xx response, or raise a classified error.

    With `stream=True` the body is left unread and the caller owns the response.
    """
    request = client.build_request(method, url, headers=headers, json=payload, timeout=httpx.Timeout(timeout))
    try:
        resp = await client.send(request, stream=stream)
    except httpx.TimeoutException as e:
        raise RequestTimeoutError(f"{label} request timed out after {timeout:g}s.") from e
    except httpx.HTTPError as e:
        raise NetworkError(f"{label} request failed: {e.__class__.__name__}") from e

    if resp.is_success:
        return resp

    try:
        if stream:
            await resp.aread()
        body_text = resp.text
    except httpx.HTTPError:
        body_text = ""
    finally:
        if stream:
            await resp.aclose()

    error = error_for_status(resp.status_code, resp.reason_phrase, body_text, label=label)
    log.warning(
        "upstream_error_response",
        label=label,
        status_code=resp.status_code,
        body=body_text[:500],
    )
    raise error


def parse_completion(resp: httpx.Response, *, label: str) -> CompletionResponse:
    try:
        data = resp.json()
    except ValueError as e:
        raise ApiError(f"{label} returned a malformed response body.", status_code=resp.status_code) from e
    if not isinstance(data, dict):
        raise ApiError(f"{label} returned an unexpected response shape.", status_code=resp.status_code)
    try:
        result = CompletionResponse.model_validate(data)
    except PydanticValidationError as e:
        raise ApiError(f"{label} returned an unexpected response shape.", status_code=resp.status_code) from e
    if not result.choices:
        raise ApiError(f"{label} returned no choices.", status_code=resp.status_code)
    return result
