"""Provider-agnostic request/response models."""

from __future__ import annotations

from enum import IntEnum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from ai_providers.capabilities import Capabilities

Role = Literal["system", "user", "assistant"]


class TextPart(BaseModel):
    """Plain text fragment of a multimodal message."""

    type: Literal["text"] = "text"
    text: str


class ImagePart(BaseModel):
    """Image reference: an http(s) URL or a ``data:`` URL."""

    type: Literal["image"] = "image"
    url: str
    mime_type: str | None = None

    @property
    def is_inline(self) -> bool:
        return self.url.startswith("data:")

    def inline_data(self) -> tuple[str, str]:
        """Return ``(mime_type, base64_payload)`` for a ``data:`` URL."""
        header, _, payload = self.url.partition(",")
        mime = header[len("data:") :].split(";", 1)[0]
        return (self.mime_type or mime or "image/jpeg", payload)


ContentPart = Annotated[Union[TextPart, ImagePart], Field(discriminator="type")]


class Message(BaseModel):
    """Single chat message."""

    role: Role
    content: str | list[ContentPart]

    def text(self) -> str:
        """Concatenate the textual content, ignoring images."""
        if isinstance(self.content, str):
            return self.content
        return "\n".join(p.text for p in self.content if isinstance(p, TextPart))

    def parts(self) -> list[TextPart | ImagePart]:
        if isinstance(self.content, str):
            return [TextPart(text=self.content)]
        return list(self.content)


class ToolSpec(BaseModel):
    """Simple JSON-schema tool definition."""

    name: str
    description: str | None = None
    parameters: dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})


class ToolCall(BaseModel):
    """Tool invocation requested by the model; ``arguments`` is a JSON string."""

    id: str
    name: str
    arguments: str = "{}"


class ResponseFormat(BaseModel):
    type: Literal["text", "json_object"] = "json_object"


class CompletionRequest(BaseModel):
    """Normalized request shared by all providers."""

    model_config = ConfigDict(frozen=True)

    messages: list[Message]
    model: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    tools: list[ToolSpec] = Field(default_factory=list)
    # "auto", "none", "required" or the name of a single tool to force
    tool_choice: str = "auto"
    response_format: ResponseFormat | None = None
    stream: bool = False

    @property
    def wants_json(self) -> bool:
        return self.response_format is not None and self.response_format.type == "json_object"


class CompletionResponse(BaseModel):
    """Normalized completion result."""

    content: str
    model: str
    provider: str
    tokens_used: int | None = None
    finish_reason: str | None = None
    tool_calls: list[ToolCall] | None = None
    # provider-specific payload kept for debugging or advanced use
    raw: dict[str, Any] = Field(default_factory=dict)


class StreamChunk(BaseModel):
    """Incremental fragment pushed to a progress callback while streaming."""

    content: str
    model: str
    done: bool = False
    finish_reason: str | None = None


class Tier(IntEnum):
    SMALL = 1
    MEDIUM = 2
    LARGE = 3
    BREAKING = 4


class ChangeSignals(BaseModel):
    """Change-size signals used to pick a model."""

    files: int = 0
    lines: int = 0
    breaking: bool = False
    complex: bool = False


class ModelRecommendation(BaseModel):
    model: str
    reason: str
    tier: Tier | None = None


class ModelValidation(BaseModel):
    """Outcome of a model availability check."""

    available: bool
    capabilities: Capabilities | None = None
    alternatives: list[str] = Field(default_factory=list)
    reason: Literal["model_not_found", "api_error", "not_configured"] | None = None
    error: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class ConnectionReport(BaseModel):
    """Diagnostic result of a connectivity probe."""

    success: bool
    provider: str
    model: str | None = None
    response: str | None = None
    error: str | None = None
    warning: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class EmbeddingResponse(BaseModel):
    """Vector returned by an embedding endpoint."""

    embedding: list[float]
    model: str
    provider: str
