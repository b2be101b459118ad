"""Helpers for sending text files as ``file`` role chat messages."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import IO

from .errors import FileValidationError
from .types import MAX_FILE_NAME_LENGTH, ChatMessage, FileMessage, FileUploadOptions

logger = logging.getLogger(__name__)

DEFAULT_FILE_NAME = "untitled.txt"

FileSource = str | bytes | Path | IO[str] | IO[bytes]


def _extension(file_name: str) -> str | None:
    if "." not in file_name:
        return None
    return file_name.rsplit(".", 1)[1].lower()


def _normalize_extension(extension: str) -> str:
    return extension.strip().lstrip(".").lower()


def validate_file(file: FileMessage, options: FileUploadOptions) -> None:
    if options.max_file_size is not None:
        size = len(file.content.encode(options.encoding))
        if size > options.max_file_size:
            raise FileValidationError(
                f"File {file.file_name} exceeds maximum size of {options.max_file_size} bytes"
            )
    if options.allowed_extensions is not None:
        allowed = {_normalize_extension(item) for item in options.allowed_extensions}
        extension = _extension(file.file_name)
        if not extension or extension not in allowed:
            raise FileValidationError(
                f"File {file.file_name} has unsupported extension. "
                f"Allowed: {', '.join(options.allowed_extensions)}"
            )


def create_file_messages(
    files: Iterable[FileMessage],
    options: FileUploadOptions | None = None,
) -> list[ChatMessage]:
    """Validate ``files`` and turn each into a ``file`` role message, in order.

    Names longer than 50 characters are truncated rather than rejected.
    """

    options = options or FileUploadOptions()
    messages: list[ChatMessage] = []
    for file in files:
        validate_file(file, options)
        file_name = file.file_name[:MAX_FILE_NAME_LENGTH]
        if file_name != file.file_name:
            logger.debug("Truncated file name %r to %r", file.file_name, file_name)
        messages.append(ChatMessage(role="file", content=file.content, file_name=file_name))
    return messages


def read_file_content(
    source: FileSource,
    file_name: str | None = None,
    *,
    encoding: str = "utf-8",
) -> FileMessage:
    """Read ``source`` as text.

    Strings are treated as the content itself, bytes are decoded, paths are
    read from disk and open file objects are read to the end.
    """

    if isinstance(source, str):
        return FileMessage(file_name=file_name or DEFAULT_FILE_NAME, content=source)
    if isinstance(source, bytes):
        return FileMessage(file_name=file_name or DEFAULT_FILE_NAME, content=source.decode(encoding))
    if isinstance(source, Path):
        return FileMessage(file_name=file_name or source.name, content=source.read_text(encoding=encoding))
    if hasattr(source, "read"):
        data = source.read()
        content = data.decode(encoding) if isinstance(data, bytes) else data
        name = file_name or Path(str(getattr(source, "name", DEFAULT_FILE_NAME))).name
        return FileMessage(file_name=name, content=content)
    raise TypeError("Unsupported file source. Expected str, bytes, Path, or a readable file object.")


__all__ = [
    "DEFAULT_FILE_NAME",
    "FileSource",
    "create_file_messages",
    "read_file_content",
    "validate_file",
]
