from __future__ import annotations

import json
from collections.abc import AsyncIterator

import structlog

from .errors import ApiError, ValidationError
from .extraction import find_stream_error, find_text_delta
from .router import ModelRouter
from .schemas import ChatMessage, CompletionRequest
from .streaming import iter_payloads

log = structlog.get_logger()


class ChatService:
    """Question answering and text streaming on top of the router."""

    def __init__(self, router: ModelRouter, *, temperature: float = 0.7):
        self.router = router
        self.temperature = temperature

    async def ask(self, question: str, model: str | None, *, system_prompt: str | None = None) -> str:
        messages: list[ChatMessage] = []
        if system_prompt:
            messages.append(ChatMessage(role="system", content=system_prompt))
        messages.append(ChatMessage(role="user", content=question))
        return await self._complete(model, messages)

    async def generate(self, prompt: str, model: str | None) -> str:
        return await self._complete(model, [ChatMessage(role="user", content=prompt)])

    async def _complete(self, model: str | None, messages: list[ChatMessage]) -> str:
        if not model:
            raise ValidationError("Please select a model.")
        response = await self.router.dispatch(
            CompletionRequest(model=model, messages=messages, temperature=self.temperature)
        )
        content = response.first_content()
        if content is None:
            raise ApiError("Malformed API response: missing choices[0].message.")
        if not content.strip():
            raise ApiError("API returned empty content.")
        return content

    async def stream(self, request: CompletionRequest) -> AsyncIterator[str]:
        """Yield text deltas as they arrive; the upstream stream is released on exit."""
        stream = await self.router.dispatch_stream(request.model_copy(update={"stream": True}))
        try:
            async for payload in iter_payloads(stream):
                try:
                    parsed = json.loads(payload)
                except (ValueError, RecursionError):
                    log.debug("chat_stream_malformed_payload", model=request.model, payload_chars=len(payload))
                    continue
                upstream_error = find_stream_error(parsed)
                if upstream_error:
                    raise ApiError(f"Chat stream failed: {upstream_error}")
                text = find_text_delta(parsed)
                if text:
                    yield text
        finally:
            await stream.aclose()
