from __future__ import annotations

import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

from .metrics import catalog_refresh_attempts_total
from .retry import RetryPolicy, call_with_retry

log = structlog.get_logger()

DEFAULT_IMAGE_MODEL = "google/gemini-2.5-flash-image-preview"
_EXCLUDED_MARKERS = ("embedding", "tts", "whisper")

PROVIDER_NAMES = {
    "openai": "OpenAI",
    "anthropic": "Anthropic",
    "google": "Google",
    "meta-llama": "Meta",
    "mistralai": "Mistral AI",
    "cohere": "Cohere",
    "deepseek": "DeepSeek",
    "qwen": "Qwen",
    "microsoft": "Microsoft",
    "nvidia": "NVIDIA",
    "perplexity": "Perplexity",
    "huggingfaceh4": "Hugging Face",
    "nousresearch": "Nous Research",
    "liquid": "Liquid",
    "togethercomputer": "Together",
    "databricks": "Databricks",
    "bigcode": "BigCode",
}


class ModelSource(Protocol):
    async def list_models(self) -> list[dict[str, Any]]: ...


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str
    provider: str
    max_tokens: int = 4096
    context_length: int = 4096
    prompt_price: float = 0.0
    completion_price: float = 0.0
    free: bool = False
    output_modalities: tuple[str, ...] = field(default_factory=tuple)


LOCAL_MODEL = ModelInfo(
    id="local/use",
    name="Local use",
    provider="Local",
    max_tokens=8192,
    context_length=128000,
    free=True,
    output_modalities=("text",),
)


def provider_display_name(model_id: str) -> str:
    prefix, sep, _ = model_id.partition("/")
    if not sep:
        return "Unknown"
    return PROVIDER_NAMES.get(prefix.lower(), prefix)


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        n = float(value)
    elif isinstance(value, str):
        try:
            n = float(value)
        except ValueError:
            return 0.0
    else:
        return 0.0
    return n if math.isfinite(n) else 0.0


def normalize_price(value: Any) -> float:
    """Per-1K-token price; values >= 1 are taken as per-1M and scaled down."""
    n = _to_float(value)
    return n / 1000 if n >= 1 else n


def to_model_info(raw: dict[str, Any]) -> ModelInfo | None:
    model_id = raw.get("id")
    if not isinstance(model_id, str) or not model_id:
        return None
    pricing = raw.get("pricing") if isinstance(raw.get("pricing"), dict) else {}
    top_provider = raw.get("top_provider") if isinstance(raw.get("top_provider"), dict) else {}
    architecture = raw.get("architecture") if isinstance(raw.get("architecture"), dict) else {}
    modalities = raw.get("output_modalities") or architecture.get("output_modalities") or []

    prompt_raw = _to_float(pricing.get("prompt"))
    completion_raw = _to_float(pricing.get("completion"))
    return ModelInfo(
        id=model_id,
        name=raw.get("name") or model_id,
        provider=provider_display_name(model_id),
        max_tokens=top_provider.get("max_completion_tokens") or 4096,
        context_length=raw.get("context_length") or 4096,
        prompt_price=normalize_price(pricing.get("prompt")),
        completion_price=normalize_price(pricing.get("completion")),
        free=(prompt_raw == 0 and completion_raw == 0) or ":free" in model_id,
        output_modalities=tuple(m for m in modalities if isinstance(m, str)),
    )


def normalize_catalog(raw_models: list[dict[str, Any]]) -> list[ModelInfo]:
    models = [m for m in (to_model_info(r) for r in raw_models) if m is not None]
    models = [m for m in models if not any(marker in m.id for marker in _EXCLUDED_MARKERS)]
    models.sort(key=lambda m: (m.provider, m.name))
    return [LOCAL_MODEL, *models]


class ModelCatalog:
    """Model list fetched from the aggregator; the only call site that retries."""

    def __init__(
        self,
        source: ModelSource,
        *,
        policy: RetryPolicy | None = None,
        sleeper: Callable[[float], Awaitable[None]] | None = None,
    ):
        self.source = source
        self.policy = policy or RetryPolicy()
        self._sleeper = sleeper
        self.models: list[ModelInfo] = []

    async def _fetch(self) -> list[dict[str, Any]]:
        try:
            raw = await self.source.list_models()
        except Exception:
            catalog_refresh_attempts_total.labels(status="error").inc()
            raise
        catalog_refresh_attempts_total.labels(status="success").inc()
        return raw

    async def refresh(self) -> list[ModelInfo]:
        raw = await call_with_retry(
            self._fetch,
            policy=self.policy,
            sleeper=self._sleeper,
            operation="catalog_refresh",
        )
        self.models = normalize_catalog(raw)
        log.info("catalog_refreshed", model_count=len(self.models))
        return self.models

    def get(self, model_id: str) -> ModelInfo | None:
        for model in self.models:
            if model.id == model_id:
                return model
        return None

    def image_models(self) -> list[str]:
        ids = [m.id for m in self.models if "image" in m.output_modalities]
        return ids or [DEFAULT_IMAGE_MODEL]
