import pytest

from model_router.catalog import (
    DEFAULT_IMAGE_MODEL,
    LOCAL_MODEL,
    ModelCatalog,
    normalize_catalog,
    normalize_price,
    provider_display_name,
    to_model_info,
)
from model_router.errors import ApiError, AuthenticationError
from model_router.retry import RetryPolicy

RAW = [
    {
        "id": "openai/gpt-4o",
        "name": "GPT-4o",
        "context_length": 128000,
        "pricing": {"prompt": "0.0025", "completion": "0.01"},
        "top_provider": {"max_completion_tokens": 16384},
        "architecture": {"output_modalities": ["text"]},
    },
    {
        "id": "google/gemini-2.5-flash-image-preview",
        "name": "Gemini Image",
        "pricing": {"prompt": "0.0003", "completion": "0.0025"},
        "output_modalities": ["image", "text"],
    },
    {"id": "meta-llama/llama-3-8b:free", "name": "Llama 3 8B", "pricing": {"prompt": "0", "completion": "0"}},
    {"id": "openai/text-embedding-3-small", "name": "Embedding"},
    {"id": "openai/tts-1", "name": "TTS"},
    {"name": "no id"},
]


class FakeSource:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def list_models(self):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


async def no_sleep(_: float) -> None:
    return None


def test_provider_display_name():
    assert provider_display_name("openai/gpt-4o") == "OpenAI"
    assert provider_display_name("meta-llama/llama-3") == "Meta"
    assert provider_display_name("somelab/model") == "somelab"
    assert provider_display_name("bare-model") == "Unknown"


def test_normalize_price_scales_per_million_values():
    assert normalize_price("0.002") == 0.002
    assert normalize_price(15) == 0.015
    assert normalize_price("n/a") == 0.0
    assert normalize_price(None) == 0.0
    assert normalize_price(float("nan")) == 0.0


def test_to_model_info_defaults_and_fields():
    info = to_model_info(RAW[0])
    assert info.provider == "OpenAI"
    assert info.max_tokens == 16384
    assert info.context_length == 128000
    assert info.output_modalities == ("text",)
    assert info.free is False

    bare = to_model_info({"id": "x/y"})
    assert bare.name == "x/y"
    assert bare.max_tokens == 4096
    assert bare.context_length == 4096
    assert bare.free is True
    assert to_model_info({"name": "missing id"}) is None


def test_normalize_catalog_filters_sorts_and_prepends_local():
    models = normalize_catalog(RAW)
    ids = [m.id for m in models]
    assert ids[0] == LOCAL_MODEL.id
    assert "openai/text-embedding-3-small" not in ids
    assert "openai/tts-1" not in ids
    assert ids[1:] == [
        "google/gemini-2.5-flash-image-preview",
        "meta-llama/llama-3-8b:free",
        "openai/gpt-4o",
    ]
    assert models[2].free is True


@pytest.mark.asyncio
async def test_refresh_retries_transient_failures():
    source = FakeSource([ApiError("Server error: 502", status_code=502), RAW])
    catalog = ModelCatalog(source, policy=RetryPolicy(max_attempts=3, base_delay_seconds=0), sleeper=no_sleep)
    models = await catalog.refresh()
    assert source.calls == 2
    assert models is catalog.models
    assert catalog.get("openai/gpt-4o").name == "GPT-4o"
    assert catalog.get("missing/model") is None


@pytest.mark.asyncio
async def test_refresh_surfaces_last_error_after_exhaustion():
    errors = [ApiError(f"attempt {i}") for i in range(1, 4)]
    source = FakeSource(errors)
    catalog = ModelCatalog(source, policy=RetryPolicy(max_attempts=3, base_delay_seconds=0), sleeper=no_sleep)
    with pytest.raises(ApiError) as exc:
        await catalog.refresh()
    assert str(exc.value) == "attempt 3"
    assert catalog.models == []


@pytest.mark.asyncio
async def test_refresh_does_not_retry_authentication_errors():
    source = FakeSource([AuthenticationError("Invalid API key: 401"), RAW])
    catalog = ModelCatalog(source, policy=RetryPolicy(max_attempts=3, base_delay_seconds=0), sleeper=no_sleep)
    with pytest.raises(AuthenticationError):
        await catalog.refresh()
    assert source.calls == 1


@pytest.mark.asyncio
async def test_image_models_from_modalities_with_default_fallback():
    catalog = ModelCatalog(FakeSource([RAW]), sleeper=no_sleep)
    assert catalog.image_models() == [DEFAULT_IMAGE_MODEL]
    await catalog.refresh()
    assert catalog.image_models() == ["google/gemini-2.5-flash-image-preview"]

    text_only = ModelCatalog(FakeSource([[RAW[0]]]), sleeper=no_sleep)
    await text_only.refresh()
    assert text_only.image_models() == [DEFAULT_IMAGE_MODEL]
