from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

import httpx
import structlog

from .config import RouterConfig
from .errors import ProviderError, UnknownError, ValidationError, classify_error
from .metrics import router_errors_total, router_request_latency_seconds, router_requests_total
from .providers import ByteStream, LocalProvider, ModelProvider, OpenRouterProvider
from .providers.base import unsupported
from .schemas import CompletionRequest, CompletionResponse, ResponsesRequest

log = structlog.get_logger()

T = TypeVar("T")


class ModelRouter:
    """
    First-match-wins dispatch over an ordered provider list.

    Registration order is part of the contract: a catch-all provider shadows
    everything registered after it. The router never retries and never caches.
    """

    def __init__(self, providers: Sequence[ModelProvider]):
        self._providers: list[ModelProvider] = list(providers)

    @property
    def providers(self) -> list[ModelProvider]:
        return list(self._providers)

    def add_provider(self, provider: ModelProvider) -> None:
        self._providers.append(provider)

    def select(self, model: str) -> ModelProvider:
        for provider in self._providers:
            if provider.can_handle(model):
                return provider
        raise ValidationError(f"No provider found for model: {model}")

    async def aclose(self) -> None:
        for provider in self._providers:
            await provider.aclose()

    async def dispatch(self, request: CompletionRequest) -> CompletionResponse:
        return await self._run(
            "completion",
            request.model,
            lambda p: p.create_completion(request),
            message_count=len(request.messages),
        )

    async def dispatch_stream(self, request: CompletionRequest) -> ByteStream:
        def _call(provider: ModelProvider) -> Awaitable[ByteStream]:
            if not provider.supports_stream:
                raise unsupported(provider.name, "streaming completions")
            return provider.create_stream(request)

        return await self._run("stream", request.model, _call, message_count=len(request.messages))

    async def dispatch_responses_stream(self, request: ResponsesRequest) -> ByteStream:
        def _call(provider: ModelProvider) -> Awaitable[ByteStream]:
            if not getattr(provider, "supports_responses", False):
                raise unsupported(provider.name, "the Responses API")
            return provider.create_responses_stream(request)

        return await self._run("responses", request.model, _call, prompt_chars=len(request.prompt))

    async def _run(
        self,
        operation: str,
        model: str,
        call: Callable[[ModelProvider], Awaitable[T]],
        **fields: Any,
    ) -> T:
        start = time.monotonic()
        provider_name = "none"
        try:
            provider = self.select(model)
            provider_name = provider.name
            with router_request_latency_seconds.labels(provider=provider_name, operation=operation).time():
                result = await call(provider)
        except ProviderError as e:
            self._record_failure(e, operation, model, provider_name, start, fields)
            raise
        except Exception as e:
            wrapped = UnknownError(f"Unexpected failure in {provider_name} {operation}: {e}")
            self._record_failure(wrapped, operation, model, provider_name, start, fields)
            raise wrapped from e

        router_requests_total.labels(provider=provider_name, operation=operation, status="success").inc()
        log.info(
            "router_dispatch_ok",
            operation=operation,
            model=model,
            provider=provider_name,
            duration_seconds=round(time.monotonic() - start, 3),
            **fields,
        )
        return result

    def _record_failure(
        self,
        error: ProviderError,
        operation: str,
        model: str,
        provider_name: str,
        start: float,
        fields: dict[str, Any],
    ) -> None:
        classification = classify_error(error)
        router_requests_total.labels(provider=provider_name, operation=operation, status="error").inc()
        router_errors_total.labels(kind=classification.kind.value).inc()
        log.warning(
            "router_dispatch_error",
            operation=operation,
            model=model,
            provider=provider_name,
            duration_seconds=round(time.monotonic() - start, 3),
            error_kind=classification.kind.value,
            error=classification.technical_message,
            retryable=classification.retryable,
            **fields,
        )


def create_router(cfg: RouterConfig | None = None, *, client: httpx.AsyncClient | None = None) -> ModelRouter:
    """Build the default registration: local endpoint first, aggregator as catch-all."""
    cfg = cfg or RouterConfig()
    local = LocalProvider(
        cfg.local_llm_url,
        client=client,
        timeout_seconds=cfg.request_timeout_seconds,
        default_temperature=cfg.default_temperature,
    )
    openrouter = OpenRouterProvider(
        cfg.openrouter_api_key,
        base_url=cfg.openrouter_base_url,
        client=client,
        app_title=cfg.app_title,
        referer=cfg.app_referer,
        timeout_seconds=cfg.request_timeout_seconds,
        responses_timeout_seconds=cfg.responses_timeout_seconds,
        default_temperature=cfg.default_temperature,
    )
    return ModelRouter([local, openrouter])
