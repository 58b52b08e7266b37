"""
Locate an image reference or a text delta inside one decoded stream payload.

Upstreams place images differently depending on the endpoint (chat vs.
Responses API) and on the model behind the aggregator, so the search runs an
ordered list of matchers from the most specific shape to an exhaustive scan.
Support for a new shape is added by appending a matcher, not by branching.

Payloads are freshly parsed JSON trees, so recursion cannot cycle; it is
additionally bounded by `MAX_DEPTH`.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Literal

MAX_DEPTH = 32

_ROOT_FIELDS = ("image_url", "image", "url")
_CONTAINER_FIELDS = ("delta", "message", "data", "response")

ImageMatcher = Callable[[Mapping[str, Any], int], "str | None"]
TextMatcher = Callable[[Mapping[str, Any]], "str | None"]


@dataclass(frozen=True)
class Extraction:
    kind: Literal["image", "text"]
    value: str


def looks_like_image_ref(value: Any) -> bool:
    return isinstance(value, str) and (value.startswith("http") or value.startswith("data:image"))


def _image_ref(candidate: Any) -> str | None:
    if looks_like_image_ref(candidate):
        return candidate
    if isinstance(candidate, Mapping) and looks_like_image_ref(candidate.get("url")):
        return candidate["url"]
    return None


def _search(node: Any, depth: int) -> str | None:
    if depth > MAX_DEPTH:
        return None
    if isinstance(node, Mapping):
        for matcher in IMAGE_MATCHERS:
            found = matcher(node, depth)
            if found:
                return found
        return None
    if isinstance(node, list):
        for item in node:
            found = _search(item, depth + 1)
            if found:
                return found
    return None


def _match_root_fields(obj: Mapping[str, Any], _depth: int) -> str | None:
    for field in _ROOT_FIELDS:
        found = _image_ref(obj.get(field))
        if found:
            return found
    return None


def _match_containers(obj: Mapping[str, Any], depth: int) -> str | None:
    for field in _CONTAINER_FIELDS:
        container = obj.get(field)
        if isinstance(container, Mapping):
            found = _search(container, depth + 1)
            if found:
                return found
    return None


def _scan_items(items: list[Any], depth: int) -> str | None:
    for item in items:
        if isinstance(item, Mapping):
            found = _search(item, depth + 1)
            if found:
                return found
    return None


def _match_content_array(obj: Mapping[str, Any], depth: int) -> str | None:
    content = obj.get("content")
    if isinstance(content, list):
        return _scan_items(content, depth)
    if isinstance(content, str) and content.startswith("data:image"):
        return content
    return None


def _match_output_array(obj: Mapping[str, Any], depth: int) -> str | None:
    output = obj.get("output")
    if isinstance(output, list):
        return _scan_items(output, depth)
    return None


def _match_any_field(obj: Mapping[str, Any], depth: int) -> str | None:
    for value in obj.values():
        if isinstance(value, (Mapping, list)):
            found = _search(value, depth + 1)
            if found:
                return found
        elif looks_like_image_ref(value):
            return value
    return None


IMAGE_MATCHERS: list[ImageMatcher] = [
    _match_root_fields,
    _match_containers,
    _match_content_array,
    _match_output_array,
    _match_any_field,
]


def find_image_url(payload: Any) -> str | None:
    return _search(payload, 0)


def _text_from_choices(obj: Mapping[str, Any]) -> str | None:
    choices = obj.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], Mapping):
        return None
    delta = choices[0].get("delta")
    if isinstance(delta, Mapping) and isinstance(delta.get("content"), str):
        return delta["content"]
    return None


def _text_from_root_delta(obj: Mapping[str, Any]) -> str | None:
    delta = obj.get("delta")
    if isinstance(delta, Mapping) and isinstance(delta.get("content"), str):
        return delta["content"]
    return None


def _text_from_responses_event(obj: Mapping[str, Any]) -> str | None:
    # e.g. {"type": "response.output_text.delta", "delta": "..."}
    event_type = obj.get("type")
    delta = obj.get("delta")
    if isinstance(event_type, str) and event_type.endswith(".delta") and isinstance(delta, str):
        return delta
    return None


TEXT_MATCHERS: list[TextMatcher] = [
    _text_from_choices,
    _text_from_root_delta,
    _text_from_responses_event,
]


def find_text_delta(payload: Any) -> str | None:
    if not isinstance(payload, Mapping):
        return None
    for matcher in TEXT_MATCHERS:
        text = matcher(payload)
        if text:
            return text
    return None


def find_stream_error(payload: Any) -> str | None:
    """Error message carried by an in-band error event, if any."""
    if not isinstance(payload, Mapping):
        return None
    error = payload.get("error")
    if error is None and payload.get("type") in ("error", "response.failed"):
        response = payload.get("response")
        error = response.get("error") if isinstance(response, Mapping) else None
        error = error or payload.get("message") or "Upstream stream failed."
    if isinstance(error, Mapping):
        message = error.get("message")
        return message if isinstance(message, str) and message else "Upstream stream failed."
    if isinstance(error, str) and error:
        return error
    return None


def extract(payload: Any) -> Extraction | None:
    """
    Image reference first, then text delta.

    A data URL sitting in the text-delta position may be only the first
    fragment of a streamed image, so it is reported as text for reassembly.
    """
    image = find_image_url(payload)
    text = find_text_delta(payload)
    if image and not (image == text and image.startswith("data:")):
        return Extraction(kind="image", value=image)
    if text:
        return Extraction(kind="text", value=text)
    return None
