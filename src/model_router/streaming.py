from __future__ import annotations

import codecs
from collections.abc import AsyncIterable, AsyncIterator

DONE_SENTINEL = "[DONE]"
_SKIPPED_FIELDS = ("event:", "id:", "retry:")


def parse_sse_line(line: str) -> str | None:
    """Payload carried by one complete frame line, or None for blank/comment/meta lines."""
    trimmed = line.strip()
    if not trimmed or trimmed.startswith(":"):
        return None
    if trimmed.startswith(_SKIPPED_FIELDS):
        return None
    if trimmed.startswith("data:"):
        trimmed = trimmed[len("data:") :].strip()
    return trimmed or None


class SSELineDecoder:
    """
    Incremental decoder from raw byte chunks to event payloads.

    Chunk boundaries may fall anywhere, including inside a line or inside a
    multi-byte UTF-8 sequence. The text after the last newline is always held
    back until the next chunk (or `flush()`) completes it.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._remainder = ""
        self.done = False

    def feed(self, chunk: bytes) -> list[str]:
        if self.done:
            return []
        text = self._remainder + self._decoder.decode(chunk)
        lines = text.split("\n")
        self._remainder = lines.pop()
        return self._consume(lines)

    def flush(self) -> list[str]:
        if self.done:
            return []
        tail = self._remainder + self._decoder.decode(b"", final=True)
        self._remainder = ""
        if not tail.strip():
            return []
        return self._consume([tail])

    def _consume(self, lines: list[str]) -> list[str]:
        payloads: list[str] = []
        for line in lines:
            payload = parse_sse_line(line)
            if payload is None:
                continue
            if payload == DONE_SENTINEL:
                self.done = True
                break
            payloads.append(payload)
        return payloads


async def iter_payloads(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
    """Yield payloads in arrival order; stops pulling once the sentinel is seen."""
    decoder = SSELineDecoder()
    async for chunk in chunks:
        for payload in decoder.feed(chunk):
            yield payload
        if decoder.done:
            return
    for payload in decoder.flush():
        yield payload
