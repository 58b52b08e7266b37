from __future__ import annotations

import logging
import re
from collections.abc import MutableMapping
from typing import Any

import structlog

# Header and config names that can carry the aggregator key.
_KEY_FIELDS = {"authorization", "x-api-key", "api_key", "openrouter_api_key"}

_BEARER_RE = re.compile(r"(?i)\bBearer\s+([A-Za-z0-9._-]{6,})")
# Inline base64 images can be megabytes; keep the header only.
_DATA_URL_RE = re.compile(r"(data:image/[A-Za-z0-9.+-]+;base64,)[A-Za-z0-9+/=]{64,}")


class Scrubber:
    """structlog processor hiding API keys and shortening inline images in event values."""

    def __init__(self, secrets: list[str] | None = None):
        self.secrets = [s for s in secrets or [] if s]

    def __call__(self, _logger: Any, _method_name: str, event_dict: MutableMapping[str, Any]) -> dict[str, Any]:
        return {k: self._field(k, v) for k, v in event_dict.items()}

    def _field(self, key: Any, value: Any) -> Any:
        name = str(key).lower()
        if name in _KEY_FIELDS or name.endswith("_api_key"):
            return "[REDACTED]"
        return self._value(value)

    def _value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._text(value)
        if isinstance(value, dict):
            return {k: self._field(k, v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return type(value)(self._value(v) for v in value)
        return value

    def _text(self, text: str) -> str:
        for secret in self.secrets:
            text = text.replace(secret, "[REDACTED]")
        text = _BEARER_RE.sub("Bearer [REDACTED]", text)
        return _DATA_URL_RE.sub(r"\1[TRUNCATED]", text)


def configure_logging(level: str = "INFO", fmt: str = "json", *, secrets: list[str] | None = None) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=log_level)

    renderer = structlog.processors.JSONRenderer() if fmt == "json" else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            Scrubber(secrets),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )
