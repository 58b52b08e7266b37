from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

from .catalog import ModelCatalog
from .chat import ChatService
from .config import RouterConfig
from .image_generation import ImageGenerationService
from .logging import configure_logging
from .metrics import maybe_start_metrics
from .providers import OpenRouterProvider
from .retry import RetryPolicy
from .router import ModelRouter, create_router


@dataclass
class Gateway:
    """Everything call sites need, constructed once at process start."""

    config: RouterConfig
    router: ModelRouter
    catalog: ModelCatalog
    chat: ChatService
    images: ImageGenerationService

    async def aclose(self) -> None:
        await self.router.aclose()


def create_gateway(
    cfg: RouterConfig | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    sleeper: Callable[[float], Awaitable[None]] | None = None,
    setup_observability: bool = True,
) -> Gateway:
    cfg = cfg or RouterConfig()
    if setup_observability:
        configure_logging(level=cfg.log_level, fmt=cfg.log_format, secrets=cfg.secrets())
        maybe_start_metrics(enable=cfg.enable_metrics, bind=cfg.metrics_bind, port=cfg.metrics_port)

    router = create_router(cfg, client=client)
    aggregator = next(p for p in router.providers if isinstance(p, OpenRouterProvider))
    catalog = ModelCatalog(
        aggregator,
        policy=RetryPolicy(
            max_attempts=cfg.catalog_retry_attempts,
            base_delay_seconds=cfg.catalog_retry_delay_seconds,
        ),
        sleeper=sleeper,
    )
    return Gateway(
        config=cfg,
        router=router,
        catalog=catalog,
        chat=ChatService(router, temperature=cfg.default_temperature),
        images=ImageGenerationService(router),
    )
