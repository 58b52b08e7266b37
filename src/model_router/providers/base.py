from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..errors import ValidationError
from ..schemas import CompletionRequest, CompletionResponse, ResponsesRequest
from ._http import ByteStream


@runtime_checkable
class ModelProvider(Protocol):
    """Operations every upstream integration exposes to the router."""

    name: str
    supports_stream: bool
    supports_responses: bool

    def can_handle(self, model: str) -> bool: ...

    async def create_completion(self, request: CompletionRequest) -> CompletionResponse: ...

    async def create_stream(self, request: CompletionRequest) -> ByteStream: ...

    async def create_responses_stream(self, request: ResponsesRequest) -> ByteStream: ...

    async def aclose(self) -> None: ...


def unsupported(provider_name: str, capability: str) -> ValidationError:
    return ValidationError(f"Provider {provider_name} does not support {capability}.")
