from __future__ import annotations

import time
from typing import Any

import httpx
import structlog

from ..config import DEFAULT_OPENROUTER_BASE_URL
from ..errors import ApiError, AuthenticationError, ValidationError
from ..schemas import CompletionRequest, CompletionResponse, ResponsesRequest
from ._http import ByteStream, parse_completion, send
from .local import is_local_model

log = structlog.get_logger()


class OpenRouterProvider:
    """
    Client for the OpenRouter aggregator.

    Handles every identifier the local endpoint does not claim, so it must be
    registered after `LocalProvider`.
    """

    name = "OpenRouter"
    supports_stream = True
    supports_responses = True

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = DEFAULT_OPENROUTER_BASE_URL,
        client: httpx.AsyncClient | None = None,
        app_title: str = "AI Agent Workspace",
        referer: str = "http://localhost",
        timeout_seconds: float = 30.0,
        responses_timeout_seconds: float = 300.0,
        default_temperature: float = 0.7,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()
        self._app_title = app_title
        self._referer = referer
        self._timeout_seconds = timeout_seconds
        self._responses_timeout_seconds = responses_timeout_seconds
        self._default_temperature = default_temperature

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def can_handle(self, model: str) -> bool:
        return not is_local_model(model)

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "X-Title": self._app_title,
            "HTTP-Referer": self._referer,
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _require_key(self) -> None:
        if not self.is_configured():
            raise AuthenticationError("OpenRouter API key not configured.")

    def _chat_body(self, request: CompletionRequest, *, stream: bool) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": request.model,
            "messages": request.wire_messages(),
            "temperature": request.temperature if request.temperature is not None else self._default_temperature,
        }
        if request.max_tokens is not None:
            body["max_tokens"] = request.max_tokens
        if stream:
            body["stream"] = True
        return body

    async def create_completion(self, request: CompletionRequest) -> CompletionResponse:
        self._require_key()
        if request.stream:
            raise ValidationError("Blocking completion called with stream=true; use a streaming dispatch.")

        start = time.monotonic()
        resp = await send(
            self._client,
            "POST",
            f"{self.base_url}/chat/completions",
            label="OpenRouter",
            timeout=self._timeout_seconds,
            headers=self._headers(),
            payload=self._chat_body(request, stream=False),
        )
        result = parse_completion(resp, label="OpenRouter")
        log.debug(
            "openrouter_completion_ok",
            model=request.model,
            api_seconds=round(time.monotonic() - start, 3),
            total_tokens=result.usage.total_tokens if result.usage else 0,
        )
        return result

    async def create_stream(self, request: CompletionRequest) -> ByteStream:
        self._require_key()
        resp = await send(
            self._client,
            "POST",
            f"{self.base_url}/chat/completions",
            label="OpenRouter",
            timeout=self._timeout_seconds,
            headers=self._headers(),
            payload=self._chat_body(request, stream=True),
            stream=True,
        )
        return ByteStream.from_response(resp, provider=self.name)

    async def create_responses_stream(self, request: ResponsesRequest) -> ByteStream:
        self._require_key()
        body: dict[str, Any] = {
            "model": request.model,
            "input": [
                {
                    "role": "user",
                    "content": [{"type": "input_text", "text": request.prompt}],
                }
            ],
            "modalities": request.effective_modalities(),
            "stream": True,
        }
        if request.max_output_tokens is not None:
            body["max_output_tokens"] = request.max_output_tokens

        resp = await send(
            self._client,
            "POST",
            f"{self.base_url}/responses",
            label="OpenRouter Responses",
            timeout=self._responses_timeout_seconds,
            headers=self._headers(),
            payload=body,
            stream=True,
        )
        return ByteStream.from_response(resp, provider=self.name)

    async def list_models(self) -> list[dict[str, Any]]:
        """Raw model catalog entries from `GET /models`."""
        headers = self._headers()
        headers.pop("Content-Type")
        resp = await send(
            self._client,
            "GET",
            f"{self.base_url}/models",
            label="OpenRouter",
            timeout=self._timeout_seconds,
            headers=headers,
        )
        try:
            data = resp.json()
        except ValueError as e:
            raise ApiError("OpenRouter returned a malformed model list.", status_code=resp.status_code) from e
        models = data.get("data") if isinstance(data, dict) else None
        if not isinstance(models, list):
            raise ApiError("Missing data in OpenRouter model list.", status_code=resp.status_code)
        return [m for m in models if isinstance(m, dict)]
