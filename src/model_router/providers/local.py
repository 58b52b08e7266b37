from __future__ import annotations

import time
from typing import Any

import httpx
import structlog

from ..config import DEFAULT_LOCAL_LLM_URL
from ..schemas import CompletionRequest, CompletionResponse, ResponsesRequest
from ._http import ByteStream, parse_completion, send
from .base import unsupported

log = structlog.get_logger()

LOCAL_MODEL_ID = "local"


def is_local_model(model: str) -> bool:
    return model == LOCAL_MODEL_ID or model.startswith(f"{LOCAL_MODEL_ID}/")


class LocalProvider:
    """Blocking-only client for a locally hosted OpenAI-compatible endpoint."""

    name = "Local"
    supports_stream = False
    supports_responses = False

    def __init__(
        self,
        base_url: str = DEFAULT_LOCAL_LLM_URL,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
        default_temperature: float = 0.7,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()
        self._timeout_seconds = timeout_seconds
        self._default_temperature = default_temperature

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def can_handle(self, model: str) -> bool:
        return is_local_model(model)

    async def create_completion(self, request: CompletionRequest) -> CompletionResponse:
        if request.stream:
            raise unsupported(self.name, "streaming completions")
        # The local server ignores the routed identifier and serves its loaded model.
        body: dict[str, Any] = {
            "model": "default",
            "messages": request.wire_messages(),
            "temperature": request.temperature if request.temperature is not None else self._default_temperature,
        }
        if request.max_tokens is not None:
            body["max_tokens"] = request.max_tokens

        start = time.monotonic()
        resp = await send(
            self._client,
            "POST",
            f"{self.base_url}/v1/chat/completions",
            label="Local model",
            timeout=self._timeout_seconds,
            headers={"Content-Type": "application/json"},
            payload=body,
        )
        result = parse_completion(resp, label="Local model")
        log.debug(
            "local_completion_ok",
            base_url=self.base_url,
            message_count=len(request.messages),
            api_seconds=round(time.monotonic() - start, 3),
            total_tokens=result.usage.total_tokens if result.usage else 0,
        )
        return result

    async def create_stream(self, request: CompletionRequest) -> ByteStream:
        raise unsupported(self.name, "streaming completions")

    async def create_responses_stream(self, request: ResponsesRequest) -> ByteStream:
        raise unsupported(self.name, "the Responses API")
