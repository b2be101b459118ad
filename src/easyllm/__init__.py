"""EasyLLM: a unified async client for OpenAI-compatible LLM APIs.

The package exposes the high-level :class:`EasyLLM` client together with
its wire types (``types.py``), configuration resolver (``config.py``), the
buffered request executor (``transport.py``) and the SSE stream decoder
(``streaming.py``).
"""

from .accumulate import ChunkAccumulator, collect_stream
from .client import EasyLLM
from .config import ClientConfig, ConfigManager, resolve_config
from .errors import (
    APIStatusError,
    ConfigurationError,
    EasyLLMError,
    FileValidationError,
    MaxRetriesExceededError,
    StreamBufferOverflowError,
    StreamCancelledError,
    StreamError,
    StreamingRequestError,
)
from .files import create_file_messages, read_file_content
from .streaming import SSEDecoder, decode_stream
from .types import (
    CancellationToken,
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    FileMessage,
    FileUploadOptions,
    FunctionDefinition,
    ImageGenerationRequest,
    ImageGenerationResponse,
    ModelsResponse,
    ModerationRequest,
    ModerationResponse,
    Provider,
    ResponseMessage,
    StreamOptions,
    Tool,
    ToolCall,
    ToolChoice,
    WebSearchOptions,
)

__version__ = "0.1.1"

__all__ = [
    "EasyLLM",
    "ClientConfig",
    "ConfigManager",
    "resolve_config",
    "ChunkAccumulator",
    "collect_stream",
    "SSEDecoder",
    "decode_stream",
    "create_file_messages",
    "read_file_content",
    "APIStatusError",
    "ConfigurationError",
    "EasyLLMError",
    "FileValidationError",
    "MaxRetriesExceededError",
    "StreamBufferOverflowError",
    "StreamCancelledError",
    "StreamError",
    "StreamingRequestError",
    "CancellationToken",
    "ChatCompletionChunk",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "ChatMessage",
    "FileMessage",
    "FileUploadOptions",
    "FunctionDefinition",
    "ImageGenerationRequest",
    "ImageGenerationResponse",
    "ModelsResponse",
    "ModerationRequest",
    "ModerationResponse",
    "Provider",
    "ResponseMessage",
    "StreamOptions",
    "Tool",
    "ToolCall",
    "ToolChoice",
    "WebSearchOptions",
    "__version__",
]
