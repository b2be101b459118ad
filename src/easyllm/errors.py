"""EasyLLM errors."""

from __future__ import annotations


class EasyLLMError(RuntimeError):
    """Raised when the client cannot complete a request."""


class ConfigurationError(EasyLLMError):
    """Raised when configuration files or environment values are invalid."""


class StreamingRequestError(EasyLLMError, ValueError):
    """Raised when a streaming request is sent through the buffered entry point."""


class FileValidationError(EasyLLMError, ValueError):
    """Raised when a file attachment fails size or extension checks."""


class APIStatusError(EasyLLMError):
    """Raised for non-2xx responses; keeps the status and raw body text."""

    def __init__(self, status_code: int, body: str, message: str | None = None) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"HTTP {status_code}: {body}")


class MaxRetriesExceededError(EasyLLMError):
    """Raised when every retry attempt for a request failed."""

    def __init__(self, last_error: Exception, attempts: int) -> None:
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"Max retries exceeded: {last_error}")


class StreamError(EasyLLMError):
    """Raised when a streaming response cannot be consumed."""


class StreamCancelledError(StreamError):
    """Raised when a stream is aborted through its cancellation token."""


class StreamBufferOverflowError(StreamError):
    """Raised when an SSE line grows past the configured buffer limit."""


__all__ = [
    "EasyLLMError",
    "ConfigurationError",
    "StreamingRequestError",
    "FileValidationError",
    "APIStatusError",
    "MaxRetriesExceededError",
    "StreamError",
    "StreamCancelledError",
    "StreamBufferOverflowError",
]
