"""Shared EasyLLM types.

Wire models are pydantic models whose field names follow the OpenAI chat
completions schema. Two fields are camelCase on the wire (``fileName`` and
``webSearch``); they are exposed in snake case and serialized by alias.
Response models keep unknown fields so provider extensions survive parsing,
and their role and finish reason fields accept values outside the known
literals (for example ``function_call`` or ``eos``).
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BASE_URL = "https://api.llm.vin/v1"
OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024
MAX_FILE_NAME_LENGTH = 50
DEFAULT_ABORT_REASON = "This operation was aborted"

Role = Literal["system", "user", "assistant", "tool", "file"]
FinishReason = Literal["stop", "length", "tool_calls", "content_filter"]


class Provider(str, Enum):
    """Remote service identity used to pick the default base URL."""

    LLM_VIN = "llm.vin"
    OPENAI = "openai"
    CUSTOM = "custom"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_payload(self) -> dict[str, Any]:
        """Serialize the fields a caller actually set, using wire names."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


# ----------------------------------------------------------------------
# Function calling
# ----------------------------------------------------------------------
class FunctionDefinition(_WireModel):
    name: str
    description: str | None = None
    # JSON Schema, passed through without validation.
    parameters: dict[str, Any] | None = None


class Tool(_WireModel):
    type: Literal["function"] = "function"
    function: FunctionDefinition


class ToolChoiceFunction(_WireModel):
    name: str


class ToolChoice(_WireModel):
    type: Literal["function"] = "function"
    function: ToolChoiceFunction


class FunctionCall(_WireModel):
    name: str | None = None
    arguments: str | None = None


class ToolCall(_WireModel):
    """A tool call requested by the model.

    Streamed deltas carry ``index`` and may omit ``id``/``type`` after the
    first fragment, so every field is optional.
    """

    index: int | None = None
    id: str | None = None
    type: Literal["function"] | str | None = None
    function: FunctionCall | None = None


# ----------------------------------------------------------------------
# Chat completions
# ----------------------------------------------------------------------
class ChatMessage(_WireModel):
    role: Role
    content: str | None = None
    name: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    file_name: str | None = Field(default=None, alias="fileName")


class ResponseMessage(ChatMessage):
    """Message returned by the server; roles outside the known set are kept."""

    role: Role | str = "assistant"


class ChatCompletionRequest(_WireModel):
    model: str
    messages: list[ChatMessage]
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    stream: bool | None = None
    tools: list[Tool] | None = None
    tool_choice: Literal["none", "auto", "required"] | ToolChoice | None = None
    web_search: bool | None = Field(default=None, alias="webSearch")


class Usage(_WireModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletionChoice(_WireModel):
    index: int = 0
    message: ResponseMessage
    finish_reason: FinishReason | str | None = None


class ChatCompletionResponse(_WireModel):
    id: str = ""
    object: str = "chat.completion"
    created: int = 0
    model: str = ""
    choices: list[ChatCompletionChoice] = Field(default_factory=list)
    usage: Usage | None = None


class ChunkDelta(_WireModel):
    role: Role | str | None = None
    content: str | None = None
    tool_calls: list[ToolCall] | None = None


class ChunkChoice(_WireModel):
    index: int = 0
    delta: ChunkDelta = Field(default_factory=ChunkDelta)
    finish_reason: FinishReason | str | None = None


class ChatCompletionChunk(_WireModel):
    id: str = ""
    object: str = "chat.completion.chunk"
    created: int = 0
    model: str = ""
    choices: list[ChunkChoice] = Field(default_factory=list)
    usage: Usage | None = None


# ----------------------------------------------------------------------
# Models, images, moderations
# ----------------------------------------------------------------------
class Model(_WireModel):
    id: str
    object: str = "model"
    created: int = 0
    owned_by: str = ""


class ModelsResponse(_WireModel):
    object: str = "list"
    data: list[Model] = Field(default_factory=list)


class ImageGenerationRequest(_WireModel):
    prompt: str
    n: int | None = None
    size: Literal["256x256", "512x512", "1024x1024"] | None = None
    response_format: Literal["url", "b64_json"] | None = None


class GeneratedImage(_WireModel):
    url: str | None = None
    b64_json: str | None = None


class ImageGenerationResponse(_WireModel):
    created: int = 0
    data: list[GeneratedImage] = Field(default_factory=list)


class ModerationRequest(_WireModel):
    input: str | list[str]
    model: str | None = None
    input_images: list[str] | None = None


class ModerationResult(_WireModel):
    flagged: bool = False
    categories: dict[str, bool] = Field(default_factory=dict)
    category_scores: dict[str, float] = Field(default_factory=dict)


class ModerationResponse(_WireModel):
    id: str = ""
    model: str = ""
    results: list[ModerationResult] = Field(default_factory=list)


# ----------------------------------------------------------------------
# Client-side helpers
# ----------------------------------------------------------------------
class WebSearchOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    max_results: int = 5
    include_content: bool = True


@dataclass(slots=True)
class FileMessage:
    """A named text attachment to send as a ``file`` role message."""

    file_name: str
    content: str


@dataclass(slots=True)
class FileUploadOptions:
    max_file_size: int | None = DEFAULT_MAX_FILE_SIZE
    allowed_extensions: list[str] | None = None
    encoding: str = "utf-8"


class CancellationToken:
    """Cooperative cancellation signal for streaming requests."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = DEFAULT_ABORT_REASON) -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    async def wait(self) -> str:
        await self._event.wait()
        return self._reason or DEFAULT_ABORT_REASON


ProgressCallback = Callable[[ChatCompletionChunk], None]
ErrorCallback = Callable[[BaseException], None]
CompleteCallback = Callable[[], None]


@dataclass(slots=True)
class StreamOptions:
    """Callbacks and limits for a single streaming call."""

    cancel_token: CancellationToken | None = None
    on_progress: ProgressCallback | None = None
    on_error: ErrorCallback | None = None
    on_complete: CompleteCallback | None = None
    # Upper bound for an unterminated SSE line; None leaves it unbounded.
    max_buffer_size: int | None = None


__all__ = [
    "DEFAULT_BASE_URL",
    "OPENAI_BASE_URL",
    "DEFAULT_MAX_FILE_SIZE",
    "MAX_FILE_NAME_LENGTH",
    "DEFAULT_ABORT_REASON",
    "Role",
    "FinishReason",
    "Provider",
    "FunctionDefinition",
    "Tool",
    "ToolChoice",
    "ToolChoiceFunction",
    "FunctionCall",
    "ToolCall",
    "ChatMessage",
    "ResponseMessage",
    "ChatCompletionRequest",
    "Usage",
    "ChatCompletionChoice",
    "ChatCompletionResponse",
    "ChunkDelta",
    "ChunkChoice",
    "ChatCompletionChunk",
    "Model",
    "ModelsResponse",
    "ImageGenerationRequest",
    "GeneratedImage",
    "ImageGenerationResponse",
    "ModerationRequest",
    "ModerationResult",
    "ModerationResponse",
    "WebSearchOptions",
    "FileMessage",
    "FileUploadOptions",
    "CancellationToken",
    "StreamOptions",
    "ProgressCallback",
    "ErrorCallback",
    "CompleteCallback",
]
