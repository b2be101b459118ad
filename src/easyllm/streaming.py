"""Server-Sent-Events decoding for streamed chat completions.

The wire format is one ``data: <json>`` line per chunk, terminated by
``data: [DONE]`` or by the server closing the body. Body segments can split a
line (or a multibyte character) anywhere, so :class:`SSEDecoder` keeps an
incremental text decoder plus a carry-over buffer holding the unterminated
tail of the last segment.
"""

from __future__ import annotations

import asyncio
import codecs
import json
import logging
from collections.abc import AsyncIterator, Awaitable
from contextlib import aclosing
from typing import TypeVar

import httpx
from pydantic import ValidationError

from .config import ClientConfig
from .errors import APIStatusError, StreamBufferOverflowError, StreamCancelledError, StreamError
from .transport import CHAT_COMPLETIONS_PATH, build_headers, build_url
from .types import (
    DEFAULT_ABORT_REASON,
    CancellationToken,
    ChatCompletionChunk,
    ChatCompletionRequest,
    StreamOptions,
)

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_LINE = "data: [DONE]"

T = TypeVar("T")


class SSEDecoder:
    """Splits a byte stream into complete text lines."""

    def __init__(self, *, max_buffer_size: int | None = None, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self._max_buffer_size = max_buffer_size

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, data: bytes) -> list[str]:
        """Return the lines completed by ``data``; the trailing piece stays buffered."""

        self._buffer += self._decoder.decode(data)
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        if self._max_buffer_size is not None and len(self._buffer) > self._max_buffer_size:
            size = len(self._buffer)
            self._buffer = ""
            raise StreamBufferOverflowError(
                f"SSE line exceeded {self._max_buffer_size} characters without a newline ({size} buffered)"
            )
        return lines

    def flush(self) -> list[str]:
        """Return whatever is left once the byte stream has ended."""

        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        return tail.split("\n") if tail else []


def parse_data_line(line: str) -> ChatCompletionChunk | None:
    """Parse one trimmed ``data:`` line; ``None`` for noise or malformed frames."""

    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX):]
    try:
        return ChatCompletionChunk.model_validate(json.loads(payload))
    except (json.JSONDecodeError, ValidationError):
        logger.warning("Failed to parse SSE chunk: %s", line)
        return None


async def _read_segment(segments: AsyncIterator[bytes]) -> bytes | None:
    try:
        return await segments.__anext__()
    except StopAsyncIteration:
        return None


async def _until_cancelled(awaitable: Awaitable[T], token: CancellationToken | None) -> T:
    """Await ``awaitable`` unless ``token`` fires first."""

    if token is None:
        return await awaitable
    if token.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise StreamCancelledError(token.reason or DEFAULT_ABORT_REASON)

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        if not work.done():
            work.cancel()
            await asyncio.wait({work})
    if work in done:
        return work.result()
    raise StreamCancelledError(token.reason or DEFAULT_ABORT_REASON)


async def decode_stream(
    segments: AsyncIterator[bytes],
    options: StreamOptions | None = None,
) -> AsyncIterator[ChatCompletionChunk]:
    """Yield chunks decoded from raw body ``segments`` in arrival order.

    Calls ``on_progress`` before each yield and ``on_complete`` exactly once,
    either at ``data: [DONE]`` or when ``segments`` is exhausted. Errors are
    left to the caller.
    """

    options = options or StreamOptions()
    token = options.cancel_token
    decoder = SSEDecoder(max_buffer_size=options.max_buffer_size)
    exhausted = False

    while not exhausted:
        segment = await _until_cancelled(_read_segment(segments), token)
        if segment is None:
            exhausted = True
            lines = decoder.flush()
        else:
            lines = decoder.feed(segment)

        for raw_line in lines:
            line = raw_line.strip()
            if not line:
                continue
            if line == DONE_LINE:
                logger.debug("SSE stream finished with [DONE]; discarding %d buffered characters", len(decoder.pending))
                if options.on_complete:
                    options.on_complete()
                return
            chunk = parse_data_line(line)
            if chunk is None:
                continue
            if options.on_progress:
                options.on_progress(chunk)
            yield chunk

    logger.debug("SSE stream closed without [DONE]")
    if options.on_complete:
        options.on_complete()


def _has_no_body(response: httpx.Response) -> bool:
    return response.status_code == 204 or response.headers.get("content-length") == "0"


async def stream_chat_completion(
    client: httpx.AsyncClient,
    config: ClientConfig,
    request: ChatCompletionRequest,
    options: StreamOptions | None = None,
) -> AsyncIterator[ChatCompletionChunk]:
    """POST ``request`` with ``stream=true`` and yield the decoded chunks.

    A non-2xx status, a missing body, transport errors and cancellation are
    reported to ``on_error`` and raised from the iterator. Transport errors
    keep their original type and message.
    """

    options = options or StreamOptions()
    token = options.cancel_token
    payload = request.model_copy(update={"stream": True}).to_payload()

    try:
        http_request = client.build_request(
            "POST",
            build_url(config, CHAT_COMPLETIONS_PATH),
            headers=build_headers(config, streaming=True),
            json=payload,
            # Only the cancellation token bounds a stalled stream.
            timeout=httpx.Timeout(config.timeout_seconds, read=None),
        )
        logger.debug("Opening chat completion stream for model %s", request.model)
        response = await _until_cancelled(client.send(http_request, stream=True), token)
        try:
            if not response.is_success:
                await response.aread()
                raise APIStatusError(response.status_code, response.text)
            if _has_no_body(response):
                raise StreamError("No response body for streaming")
            async with aclosing(decode_stream(response.aiter_bytes(), options)) as chunks:
                async for chunk in chunks:
                    yield chunk
        finally:
            await response.aclose()
    except Exception as exc:
        if options.on_error:
            options.on_error(exc)
        raise


__all__ = [
    "DATA_PREFIX",
    "DONE_LINE",
    "SSEDecoder",
    "decode_stream",
    "parse_data_line",
    "stream_chat_completion",
]
