from __future__ import annotations

import json
import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from .errors import ApiError, ValidationError
from .extraction import extract, find_stream_error
from .metrics import stream_events_total
from .reassembly import Base64ImageBuffer, CompletionHeuristic, ImageResource
from .router import ModelRouter
from .schemas import ResponsesRequest
from .streaming import iter_payloads

log = structlog.get_logger()

ProgressCallback = Callable[[str | None, str], None]

# Buffer size after which accumulation progress is reported.
_PROGRESS_THRESHOLD = 100


@dataclass(frozen=True)
class GeneratedImage:
    model: str
    url: str
    resource: ImageResource | None = None


class ImageGenerationService:
    """
    Image generation over the aggregator's multimodal streaming endpoint.

    The image may arrive as a URL anywhere in a payload, or as base64 text
    fragments on the ordinary text channel; the first resolved image ends
    the stream.
    """

    def __init__(self, router: ModelRouter, *, heuristic: CompletionHeuristic | None = None):
        self.router = router
        self._heuristic = heuristic

    async def generate(
        self,
        prompt: str,
        model: str | None,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> GeneratedImage:
        if not model:
            raise ValidationError("Image model must be specified.")
        if not prompt.strip():
            raise ValidationError("Image prompt must be non-empty.")

        def progress(url: str | None, status: str) -> None:
            if on_progress is not None:
                on_progress(url, status)

        start = time.monotonic()
        request = ResponsesRequest(model=model, prompt=prompt, modalities=["image", "text"])
        stream = await self.router.dispatch_responses_stream(request)
        buffer = Base64ImageBuffer(self._heuristic)
        events = 0
        try:
            async for payload in iter_payloads(stream):
                events += 1
                try:
                    parsed = json.loads(payload)
                except (ValueError, RecursionError):
                    stream_events_total.labels(outcome="malformed").inc()
                    log.debug("image_stream_malformed_payload", model=model, payload_chars=len(payload))
                    continue

                upstream_error = find_stream_error(parsed)
                if upstream_error:
                    stream_events_total.labels(outcome="error").inc()
                    raise ApiError(f"Image stream failed: {upstream_error}")

                found = extract(parsed)
                if found is None:
                    stream_events_total.labels(outcome="ignored").inc()
                    continue

                if found.kind == "image":
                    stream_events_total.labels(outcome="image").inc()
                    progress(found.value, "Image received")
                    self._log_done(model, start, events, source="url")
                    return GeneratedImage(model=model, url=found.value)

                stream_events_total.labels(outcome="text").inc()
                resource = buffer.append(found.value)
                if len(buffer) > _PROGRESS_THRESHOLD:
                    progress(None, f"Receiving image data... {len(buffer)} characters")
                if resource is not None:
                    return self._from_resource(model, resource, progress, start, events)
        finally:
            await stream.aclose()

        resource = buffer.finish()
        if resource is not None:
            return self._from_resource(model, resource, progress, start, events)

        log.warning("image_stream_without_image", model=model, events=events, buffered_chars=len(buffer))
        raise ApiError("Model did not return an image in the streaming response.")

    def _from_resource(
        self,
        model: str,
        resource: ImageResource,
        progress: ProgressCallback,
        start: float,
        events: int,
    ) -> GeneratedImage:
        progress(None, "Converting image...")
        url = resource.to_data_url()
        progress(url, "Image ready")
        self._log_done(model, start, events, source="base64")
        return GeneratedImage(model=model, url=url, resource=resource)

    def _log_done(self, model: str, start: float, events: int, *, source: str) -> None:
        log.info(
            "image_generated",
            model=model,
            source=source,
            events=events,
            duration_seconds=round(time.monotonic() - start, 3),
        )
