from __future__ import annotations

import time
import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Role = Literal["system", "user", "assistant"]
Modality = Literal["image", "text"]


class ChatMessage(BaseModel):
    role: Role
    content: str


class CompletionRequest(BaseModel):
    model: str
    messages: list[ChatMessage]
    temperature: float | None = None
    max_tokens: int | None = None
    stream: bool = False

    @field_validator("model")
    @classmethod
    def _validate_model(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("model must be non-empty.")
        return v

    @field_validator("temperature")
    @classmethod
    def _validate_temperature(cls, v: float | None) -> float | None:
        if v is None:
            return None
        if not (0.0 <= v <= 2.0):
            raise ValueError("temperature must be between 0 and 2.")
        return v

    @field_validator("max_tokens")
    @classmethod
    def _validate_max_tokens(cls, v: int | None) -> int | None:
        if v is None:
            return None
        if v <= 0:
            raise ValueError("max_tokens must be > 0.")
        return v

    def wire_messages(self) -> list[dict[str, str]]:
        return [{"role": m.role, "content": m.content} for m in self.messages]


class ResponseMessage(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    role: Literal["system", "user", "assistant", "tool"] = "assistant"
    content: str | None = None


class Choice(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    index: int = 0
    message: ResponseMessage
    finish_reason: str | None = None


class Usage(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class CompletionResponse(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(default_factory=lambda: f"chatcmpl-{uuid.uuid4().hex}")
    created: int = Field(default_factory=lambda: int(time.time()))
    model: str = ""
    choices: list[Choice]
    usage: Usage | None = None

    def first_content(self) -> str | None:
        if not self.choices:
            return None
        return self.choices[0].message.content


class ResponsesRequest(BaseModel):
    """Multimodal request for the aggregator's ``/responses`` endpoint."""

    model: str
    prompt: str
    modalities: list[Modality] = Field(default_factory=list)
    max_output_tokens: int | None = None

    @field_validator("max_output_tokens")
    @classmethod
    def _validate_max_output_tokens(cls, v: int | None) -> int | None:
        if v is None:
            return None
        if v <= 0:
            raise ValueError("max_output_tokens must be > 0.")
        return v

    def effective_modalities(self) -> list[str]:
        return list(self.modalities) if self.modalities else ["image", "text"]
