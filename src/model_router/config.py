from __future__ import annotations

import os

from pydantic import BaseModel, Field

DEFAULT_OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_LOCAL_LLM_URL = "http://localhost:11964"


class RouterConfig(BaseModel):
    # Remote aggregator
    openrouter_api_key: str | None = Field(default_factory=lambda: os.getenv("OPENROUTER_API_KEY"))
    openrouter_base_url: str = Field(
        default_factory=lambda: os.getenv("OPENROUTER_BASE_URL", DEFAULT_OPENROUTER_BASE_URL)
    )
    app_title: str = Field(default_factory=lambda: os.getenv("APP_TITLE", "AI Agent Workspace"))
    app_referer: str = Field(default_factory=lambda: os.getenv("APP_REFERER", "http://localhost"))

    # Local endpoint
    local_llm_url: str = Field(default_factory=lambda: os.getenv("LOCAL_LLM_URL", DEFAULT_LOCAL_LLM_URL))

    # Generation defaults
    default_temperature: float = Field(
        default_factory=lambda: float(os.getenv("DEFAULT_TEMPERATURE", "0.7"))
    )

    # Timeouts
    request_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"))
    )
    responses_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("RESPONSES_TIMEOUT_SECONDS", "300"))
    )

    # Catalog refresh retry
    catalog_retry_attempts: int = Field(default_factory=lambda: int(os.getenv("CATALOG_RETRY_ATTEMPTS", "3")))
    catalog_retry_delay_seconds: float = Field(
        default_factory=lambda: float(os.getenv("CATALOG_RETRY_DELAY_SECONDS", "1.0"))
    )

    # Observability
    enable_metrics: bool = Field(
        default_factory=lambda: os.getenv("ENABLE_METRICS", "false").lower() == "true"
    )
    metrics_bind: str = Field(default_factory=lambda: os.getenv("METRICS_BIND", "127.0.0.1"))
    metrics_port: int = Field(default_factory=lambda: int(os.getenv("METRICS_PORT", "9109")))
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = Field(default_factory=lambda: os.getenv("LOG_FORMAT", "json"))

    def secrets(self) -> list[str]:
        return [s for s in (self.openrouter_api_key,) if s]
