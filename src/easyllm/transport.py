"""HTTP transport helpers and the buffered request executor."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from .config import ClientConfig
from .errors import APIStatusError, EasyLLMError, MaxRetriesExceededError

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]

CHAT_COMPLETIONS_PATH = "/chat/completions"
MODELS_PATH = "/models"
IMAGES_PATH = "/images/generations"
MODERATIONS_PATH = "/moderations"


def build_url(config: ClientConfig, path: str) -> str:
    return f"{config.base_url.rstrip('/')}/{path.lstrip('/')}"


def build_headers(config: ClientConfig, *, streaming: bool = False) -> dict[str, str]:
    headers = {
        "Authorization": f"Bearer {config.api_key or ''}",
        "Content-Type": "application/json",
    }
    if streaming:
        headers["Accept"] = "text/event-stream"
    return headers


def backoff_delay(retry_number: int) -> float:
    """Seconds to wait before retry ``retry_number`` (zero based)."""
    return float(2**retry_number)


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, APIStatusError):
        return exc.status_code >= 500
    return isinstance(exc, (httpx.TimeoutException, httpx.NetworkError))


class RequestExecutor:
    """Sends buffered JSON requests and retries server-side failures."""

    def __init__(
        self,
        config: ClientConfig,
        client: httpx.AsyncClient,
        *,
        sleep: SleepFn | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._sleep = sleep or asyncio.sleep

    @property
    def config(self) -> ClientConfig:
        return self._config

    @config.setter
    def config(self, value: ClientConfig) -> None:
        self._config = value

    async def execute(self, path: str, method: str = "POST", body: dict[str, Any] | None = None) -> Any:
        """Send one request and return its decoded JSON body.

        5xx responses and timeout/network errors are retried ``max_retries``
        times with ``2**n`` second delays. 4xx responses raise immediately.
        """

        config = self._config
        url = build_url(config, path)
        headers = build_headers(config)
        retries = 0

        while True:
            try:
                return await self._send_once(method, url, headers, body, config.timeout_seconds)
            except (APIStatusError, httpx.TimeoutException, httpx.NetworkError) as exc:
                if not _is_retryable(exc):
                    logger.debug("%s %s failed without retry: %s", method, path, exc)
                    raise
                if retries >= config.max_retries:
                    if config.max_retries == 0:
                        raise
                    logger.error("%s %s failed after %d attempts: %s", method, path, retries + 1, exc)
                    raise MaxRetriesExceededError(exc, attempts=retries + 1) from exc
                delay = backoff_delay(retries)
                logger.warning("%s %s failed (%s); retrying in %.1fs", method, path, exc, delay)
                await self._sleep(delay)
                retries += 1

    async def _send_once(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: dict[str, Any] | None,
        timeout: float,
    ) -> Any:
        response = await self._client.request(method, url, headers=headers, json=body, timeout=timeout)
        if response.is_success:
            logger.debug("%s %s -> %s", method, url, response.status_code)
            try:
                return response.json()
            except json.JSONDecodeError as exc:
                raise EasyLLMError(f"Invalid JSON in response from {url}") from exc
        raise APIStatusError(response.status_code, response.text)


__all__ = [
    "CHAT_COMPLETIONS_PATH",
    "MODELS_PATH",
    "IMAGES_PATH",
    "MODERATIONS_PATH",
    "RequestExecutor",
    "SleepFn",
    "backoff_delay",
    "build_headers",
    "build_url",
]
