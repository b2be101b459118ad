"""EasyLLM client: one surface for OpenAI-compatible chat, image and moderation APIs."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable, Mapping
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from .config import ClientConfig, resolve_config
from .errors import EasyLLMError, StreamingRequestError
from .files import FileSource, create_file_messages, read_file_content
from .streaming import stream_chat_completion
from .transport import (
    CHAT_COMPLETIONS_PATH,
    IMAGES_PATH,
    MODELS_PATH,
    MODERATIONS_PATH,
    RequestExecutor,
    SleepFn,
)
from .types import (
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    FileMessage,
    FileUploadOptions,
    ImageGenerationRequest,
    ImageGenerationResponse,
    ModelsResponse,
    ModerationRequest,
    ModerationResponse,
    StreamOptions,
)

logger = logging.getLogger(__name__)

ChatRequestLike = ChatCompletionRequest | Mapping[str, Any]
ChunkStream = AsyncIterator[ChatCompletionChunk]
ResponseT = TypeVar("ResponseT", bound=BaseModel)


def _chat_request(request: ChatRequestLike) -> ChatCompletionRequest:
    if isinstance(request, ChatCompletionRequest):
        return request
    return ChatCompletionRequest.model_validate(request)


def _parse_response(model: type[ResponseT], data: Any, path: str) -> ResponseT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise EasyLLMError(f"Unexpected response shape from {path}: {exc}") from exc


class EasyLLM:
    """Async client for OpenAI-compatible endpoints.

    Configuration is resolved once at construction. The only setting that can
    change afterwards is the global web search toggle.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        sleep: SleepFn | None = None,
        **overrides: Any,
    ) -> None:
        self._config = config or resolve_config(overrides)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self._config.timeout_seconds)
        self._executor = RequestExecutor(self._config, self._client, sleep=sleep)
        self.chat = ChatNamespace(self)
        self.models = ModelsNamespace(self)
        self.images = ImagesNamespace(self)
        self.moderations = ModerationsNamespace(self)
        self.files = FilesNamespace(self)

    @property
    def config(self) -> ClientConfig:
        return self._config

    async def __aenter__(self) -> EasyLLM:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Dispose the underlying HTTP client if owned by this instance."""

        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Chat completions
    # ------------------------------------------------------------------
    async def create_chat_completion(self, request: ChatRequestLike) -> ChatCompletionResponse:
        chat_request = _chat_request(request)
        if chat_request.stream:
            raise StreamingRequestError("Use stream_chat_completion() for streaming requests")
        data = await self._executor.execute(CHAT_COMPLETIONS_PATH, "POST", chat_request.to_payload())
        return _parse_response(ChatCompletionResponse, data, CHAT_COMPLETIONS_PATH)

    def stream_chat_completion(
        self,
        request: ChatRequestLike,
        options: StreamOptions | None = None,
    ) -> ChunkStream:
        """Return an async iterator over the chunks of a streamed completion.

        Nothing is sent until the iterator is first advanced.
        """

        return stream_chat_completion(self._client, self._config, _chat_request(request), options)

    async def create_chat_completion_with_web_search(
        self, request: ChatRequestLike
    ) -> ChatCompletionResponse:
        return await self.create_chat_completion(self._with_web_search(_chat_request(request)))

    def stream_chat_completion_with_web_search(
        self,
        request: ChatRequestLike,
        options: StreamOptions | None = None,
    ) -> ChunkStream:
        return self.stream_chat_completion(self._with_web_search(_chat_request(request)), options)

    async def create_chat_completion_with_files(
        self,
        request: ChatRequestLike,
        files: Iterable[FileMessage],
        options: FileUploadOptions | None = None,
    ) -> ChatCompletionResponse:
        return await self.create_chat_completion(self._with_files(_chat_request(request), files, options))

    def stream_chat_completion_with_files(
        self,
        request: ChatRequestLike,
        files: Iterable[FileMessage],
        stream_options: StreamOptions | None = None,
        file_options: FileUploadOptions | None = None,
    ) -> ChunkStream:
        # Validation runs here, before the iterator exists.
        chat_request = self._with_files(_chat_request(request), files, file_options)
        return self.stream_chat_completion(chat_request, stream_options)

    # ------------------------------------------------------------------
    # Other endpoints
    # ------------------------------------------------------------------
    async def list_models(self) -> ModelsResponse:
        data = await self._executor.execute(MODELS_PATH, "GET")
        return _parse_response(ModelsResponse, data, MODELS_PATH)

    async def create_image(self, request: ImageGenerationRequest | Mapping[str, Any]) -> ImageGenerationResponse:
        image_request = ImageGenerationRequest.model_validate(request)
        data = await self._executor.execute(IMAGES_PATH, "POST", image_request.to_payload())
        return _parse_response(ImageGenerationResponse, data, IMAGES_PATH)

    async def create_moderation(self, request: ModerationRequest | Mapping[str, Any]) -> ModerationResponse:
        moderation_request = ModerationRequest.model_validate(request)
        data = await self._executor.execute(MODERATIONS_PATH, "POST", moderation_request.to_payload())
        return _parse_response(ModerationResponse, data, MODERATIONS_PATH)

    # ------------------------------------------------------------------
    # Web search and files
    # ------------------------------------------------------------------
    def set_web_search_enabled(self, enabled: bool) -> None:
        """Enable or disable web search for requests that do not choose explicitly."""

        logger.debug("Web search %s", "enabled" if enabled else "disabled")
        self._config = self._config.with_web_search_enabled(enabled)
        self._executor.config = self._config

    def is_web_search_enabled(self) -> bool:
        return self._config.web_search.enabled

    def create_file_messages(
        self,
        files: Iterable[FileMessage],
        options: FileUploadOptions | None = None,
    ) -> list[ChatMessage]:
        return create_file_messages(files, options)

    def _with_web_search(self, request: ChatCompletionRequest) -> ChatCompletionRequest:
        if request.web_search is not None:
            return request
        if self._config.web_search.enabled:
            return request.model_copy(update={"web_search": True})
        return request

    def _with_files(
        self,
        request: ChatCompletionRequest,
        files: Iterable[FileMessage],
        options: FileUploadOptions | None,
    ) -> ChatCompletionRequest:
        file_messages = create_file_messages(files, options)
        return request.model_copy(update={"messages": [*file_messages, *request.messages]})


class CompletionsNamespace:
    """``client.chat.completions``"""

    def __init__(self, owner: EasyLLM) -> None:
        self._owner = owner

    async def create(self, request: ChatRequestLike) -> ChatCompletionResponse | ChunkStream:
        """Buffered completion, or a chunk iterator when ``request.stream`` is set."""

        chat_request = _chat_request(request)
        if chat_request.stream:
            return self._owner.stream_chat_completion(chat_request)
        return await self._owner.create_chat_completion(chat_request)

    def stream(self, request: ChatRequestLike, options: StreamOptions | None = None) -> ChunkStream:
        return self._owner.stream_chat_completion(request, options)

    async def create_with_web_search(self, request: ChatRequestLike) -> ChatCompletionResponse | ChunkStream:
        chat_request = _chat_request(request)
        if chat_request.stream:
            return self._owner.stream_chat_completion_with_web_search(chat_request)
        return await self._owner.create_chat_completion_with_web_search(chat_request)

    def stream_with_web_search(
        self, request: ChatRequestLike, options: StreamOptions | None = None
    ) -> ChunkStream:
        return self._owner.stream_chat_completion_with_web_search(request, options)

    async def create_with_files(
        self,
        request: ChatRequestLike,
        files: Iterable[FileMessage],
        options: FileUploadOptions | None = None,
    ) -> ChatCompletionResponse:
        return await self._owner.create_chat_completion_with_files(request, files, options)

    def stream_with_files(
        self,
        request: ChatRequestLike,
        files: Iterable[FileMessage],
        stream_options: StreamOptions | None = None,
        file_options: FileUploadOptions | None = None,
    ) -> ChunkStream:
        return self._owner.stream_chat_completion_with_files(request, files, stream_options, file_options)


class ChatNamespace:
    def __init__(self, owner: EasyLLM) -> None:
        self.completions = CompletionsNamespace(owner)


class ModelsNamespace:
    def __init__(self, owner: EasyLLM) -> None:
        self._owner = owner

    async def list(self) -> ModelsResponse:
        return await self._owner.list_models()


class ImagesNamespace:
    def __init__(self, owner: EasyLLM) -> None:
        self._owner = owner

    async def generate(self, request: ImageGenerationRequest | Mapping[str, Any]) -> ImageGenerationResponse:
        return await self._owner.create_image(request)


class ModerationsNamespace:
    def __init__(self, owner: EasyLLM) -> None:
        self._owner = owner

    async def create(self, request: ModerationRequest | Mapping[str, Any]) -> ModerationResponse:
        return await self._owner.create_moderation(request)


class FilesNamespace:
    def __init__(self, owner: EasyLLM) -> None:
        self._owner = owner

    def create_messages(
        self,
        files: Iterable[FileMessage],
        options: FileUploadOptions | None = None,
    ) -> list[ChatMessage]:
        return self._owner.create_file_messages(files, options)

    @staticmethod
    def read_content(source: FileSource, file_name: str | None = None) -> FileMessage:
        return read_file_content(source, file_name)


__all__ = [
    "EasyLLM",
    "ChatNamespace",
    "CompletionsNamespace",
    "FilesNamespace",
    "ImagesNamespace",
    "ModelsNamespace",
    "ModerationsNamespace",
]
