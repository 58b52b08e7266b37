from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Protocol

DATA_URL_MARKER = "data:image/"
DEFAULT_MEDIA_TYPE = "image/png"

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/=]+$")
_DATA_URL_HEADER_RE = re.compile(r"data:(image/[A-Za-z0-9.+-]+);base64,")


@dataclass(frozen=True)
class ImageResource:
    media_type: str
    data: bytes

    def to_data_url(self) -> str:
        return f"data:{self.media_type};base64,{base64.b64encode(self.data).decode('ascii')}"


class CompletionHeuristic(Protocol):
    def is_complete(self, buffer: str) -> bool: ...


class DefaultCompletionHeuristic:
    """
    Buffer ends in base64 padding and is either a data URL or long bare base64.

    A body whose length needs no padding never completes here; it is decoded
    by `Base64ImageBuffer.finish()` once the stream ends. Ordinary text that
    happens to look like padded base64 will also match; there is no stronger
    delimiter on the text channel.
    """

    def __init__(self, min_length: int = 100):
        self.min_length = min_length

    def is_complete(self, buffer: str) -> bool:
        if not buffer.endswith("="):
            return False
        if DATA_URL_MARKER in buffer:
            return True
        return len(buffer) >= self.min_length and bool(_BASE64_RE.match(buffer))


def decode_image(buffer: str) -> ImageResource:
    """Decode a data URL or bare base64 (assumed PNG); raises ValueError on bad data."""
    media_type = DEFAULT_MEDIA_TYPE
    body = buffer
    header = _DATA_URL_HEADER_RE.search(buffer)
    if header:
        media_type = header.group(1)
        body = buffer[header.end() :]
    elif "base64," in buffer:
        body = buffer.split("base64,", 1)[1]
    try:
        data = base64.b64decode(body.strip(), validate=True)
    except binascii.Error as e:
        raise ValueError("Invalid base64 image data.") from e
    if not data:
        raise ValueError("Empty image data.")
    return ImageResource(media_type=media_type, data=data)


class Base64ImageBuffer:
    """
    Per-request accumulator for images streamed as base64 over the text channel.

    Once resolved, further appends are ignored: the first decoded image wins.
    """

    def __init__(self, heuristic: CompletionHeuristic | None = None):
        self.heuristic = heuristic or DefaultCompletionHeuristic()
        self._buffer = ""
        self.resolved: ImageResource | None = None

    def __len__(self) -> int:
        return len(self._buffer)

    @property
    def text(self) -> str:
        return self._buffer

    def append(self, fragment: str) -> ImageResource | None:
        if self.resolved is not None:
            return None
        self._buffer += fragment
        if not self.heuristic.is_complete(self._buffer):
            return None
        return self._try_decode()

    def finish(self) -> ImageResource | None:
        """
        Decode a data URL left open at end of stream.

        Bare base64 is only accepted through the heuristic, since short plain
        text can decode as valid base64.
        """
        if self.resolved is not None:
            return self.resolved
        if DATA_URL_MARKER not in self._buffer:
            return None
        return self._try_decode()

    def _try_decode(self) -> ImageResource | None:
        try:
            self.resolved = decode_image(self._buffer)
        except ValueError:
            # Body still partial or invalid; keep accumulating.
            return None
        return self.resolved
