"""Fold streamed chat completion chunks into a single response."""

from __future__ import annotations

from collections.abc import AsyncIterable
from dataclasses import dataclass, field

from .types import (
    ChatCompletionChoice,
    ChatCompletionChunk,
    ChatCompletionResponse,
    FunctionCall,
    ResponseMessage,
    ToolCall,
    Usage,
)


@dataclass(slots=True)
class _ToolCallParts:
    id: str | None = None
    name: str | None = None
    arguments: list[str] = field(default_factory=list)


@dataclass(slots=True)
class _ChoiceParts:
    role: str = "assistant"
    text: list[str] = field(default_factory=list)
    finish_reason: str | None = None
    tool_calls: dict[int, _ToolCallParts] = field(default_factory=dict)


class ChunkAccumulator:
    """Collects chunk deltas per choice index."""

    def __init__(self) -> None:
        self._id = ""
        self._model = ""
        self._created = 0
        self._usage: Usage | None = None
        self._choices: dict[int, _ChoiceParts] = {}
        self.chunk_count = 0

    def add(self, chunk: ChatCompletionChunk) -> None:
        self.chunk_count += 1
        self._id = chunk.id or self._id
        self._model = chunk.model or self._model
        self._created = chunk.created or self._created
        if chunk.usage is not None:
            self._usage = chunk.usage
        for choice in chunk.choices:
            parts = self._choices.setdefault(choice.index, _ChoiceParts())
            delta = choice.delta
            if delta.role:
                parts.role = delta.role
            if delta.content:
                parts.text.append(delta.content)
            for position, call in enumerate(delta.tool_calls or []):
                index = call.index if call.index is not None else position
                call_parts = parts.tool_calls.setdefault(index, _ToolCallParts())
                if call.id:
                    call_parts.id = call.id
                if call.function is not None:
                    if call.function.name:
                        call_parts.name = call.function.name
                    if call.function.arguments:
                        call_parts.arguments.append(call.function.arguments)
            if choice.finish_reason is not None:
                parts.finish_reason = choice.finish_reason

    @property
    def text(self) -> str:
        """Concatenated content of the first choice."""
        parts = self._choices.get(0)
        return "".join(parts.text) if parts else ""

    def build(self) -> ChatCompletionResponse:
        choices: list[ChatCompletionChoice] = []
        for index in sorted(self._choices):
            parts = self._choices[index]
            tool_calls = [
                ToolCall(
                    id=call.id,
                    type="function",
                    function=FunctionCall(name=call.name, arguments="".join(call.arguments)),
                )
                for _, call in sorted(parts.tool_calls.items())
            ]
            message = ResponseMessage(
                role=parts.role,
                content="".join(parts.text) if parts.text or not tool_calls else None,
                tool_calls=tool_calls or None,
            )
            choices.append(
                ChatCompletionChoice(index=index, message=message, finish_reason=parts.finish_reason)
            )
        return ChatCompletionResponse(
            id=self._id,
            created=self._created,
            model=self._model,
            choices=choices,
            usage=self._usage,
        )


async def collect_stream(stream: AsyncIterable[ChatCompletionChunk]) -> ChatCompletionResponse:
    """Drain ``stream`` and return the equivalent buffered response."""

    accumulator = ChunkAccumulator()
    async for chunk in stream:
        accumulator.add(chunk)
    return accumulator.build()


__all__ = ["ChunkAccumulator", "collect_stream"]
