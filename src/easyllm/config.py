"""Client configuration: defaults, provider resolution and TOML/env loading."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from copy import deepcopy
from pathlib import Path
from typing import Any

import tomli_w
from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import ConfigurationError
from .types import DEFAULT_BASE_URL, OPENAI_BASE_URL, Provider, WebSearchOptions

DEFAULT_CONFIG_DIR = Path(os.environ.get("EASYLLM_HOME", Path.home() / ".easyllm"))
CONFIG_FILENAME = "config.toml"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 3

_PROVIDER_BASE_URLS: dict[Provider, str | None] = {
    Provider.LLM_VIN: None,
    Provider.OPENAI: OPENAI_BASE_URL,
    Provider.CUSTOM: None,
}


class ClientConfig(BaseModel):
    """Fully resolved, immutable client configuration."""

    model_config = ConfigDict(frozen=True)

    api_key: str | None = None
    base_url: str = DEFAULT_BASE_URL
    provider: Provider = Provider.LLM_VIN
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    web_search: WebSearchOptions = WebSearchOptions()

    def with_web_search_enabled(self, enabled: bool) -> ClientConfig:
        web_search = self.web_search.model_copy(update={"enabled": enabled})
        return self.model_copy(update={"web_search": web_search})


def resolve_config(overrides: Mapping[str, Any] | None = None, **kwargs: Any) -> ClientConfig:
    """Merge caller overrides onto defaults and apply the provider base URL.

    Keys whose value is ``None`` count as absent. ``web_search`` may be a
    mapping or a ``WebSearchOptions`` and is merged field by field. When the
    provider is ``openai`` the OpenAI endpoint replaces any ``base_url``.
    """

    data: dict[str, Any] = {}
    for source in (overrides or {}, kwargs):
        for key, value in source.items():
            if value is not None:
                data[key] = value

    web_search = data.pop("web_search", None)
    if isinstance(web_search, WebSearchOptions):
        web_search = web_search.model_dump(exclude_unset=True)
    try:
        merged_web_search = WebSearchOptions(
            **{key: value for key, value in (web_search or {}).items() if value is not None}
        )
        config = ClientConfig(**data, web_search=merged_web_search)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc

    forced_url = _PROVIDER_BASE_URLS[config.provider]
    if forced_url is not None and config.base_url != forced_url:
        config = config.model_copy(update={"base_url": forced_url})
    return config


def _env_flag(raw: str) -> bool:
    return raw.strip().lower() not in {"", "0", "false", "no"}


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if environ.get("EASYLLM_API_KEY"):
        overrides["api_key"] = environ["EASYLLM_API_KEY"]
    if environ.get("EASYLLM_BASE_URL"):
        overrides["base_url"] = environ["EASYLLM_BASE_URL"]
    if environ.get("EASYLLM_PROVIDER"):
        overrides["provider"] = environ["EASYLLM_PROVIDER"]
    try:
        if environ.get("EASYLLM_TIMEOUT"):
            overrides["timeout_seconds"] = float(environ["EASYLLM_TIMEOUT"])
        if environ.get("EASYLLM_MAX_RETRIES"):
            overrides["max_retries"] = int(environ["EASYLLM_MAX_RETRIES"])
    except ValueError as exc:
        raise ConfigurationError(f"Invalid numeric environment override: {exc}") from exc
    if "EASYLLM_WEB_SEARCH" in environ:
        overrides["web_search"] = {"enabled": _env_flag(environ["EASYLLM_WEB_SEARCH"])}
    return overrides


class ConfigManager:
    """Loads layered client configuration and persists it as TOML."""

    def __init__(
        self,
        config_dir: Path | None = None,
        *,
        project_config_path: Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.config_dir = config_dir or DEFAULT_CONFIG_DIR
        self.config_path = self.config_dir / CONFIG_FILENAME
        self.project_config_path = project_config_path
        self._environ = os.environ if environ is None else environ

    def load(self, **overrides: Any) -> ClientConfig:
        """Resolve file, project file, environment and keyword overrides, in that order."""

        data = self._read_config_dict(self.config_path)
        if self.project_config_path:
            data = self._merge_dicts(data, self._read_config_dict(self.project_config_path))
        data = self._merge_dicts(data, _env_overrides(self._environ))
        explicit = {key: value for key, value in overrides.items() if value is not None}
        data = self._merge_dicts(data, explicit)
        return resolve_config(data)

    def save(self, config: ClientConfig) -> Path:
        """Write ``config`` to the user config file; the API key is never persisted."""

        self.config_dir.mkdir(parents=True, exist_ok=True)
        payload = config.model_dump(mode="json", exclude={"api_key"})
        self.config_path.write_text(tomli_w.dumps(payload))
        return self.config_path

    def _read_config_dict(self, path: Path | None) -> dict[str, Any]:
        if path is None or not path.exists():
            return {}
        try:
            return tomllib.loads(path.read_text())
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ConfigurationError(f"Failed to load config from {path}: {exc}") from exc

    def _merge_dicts(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        result = deepcopy(base)
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_dicts(result[key], value)
            else:
                result[key] = value
        return result


__all__ = [
    "ClientConfig",
    "ConfigManager",
    "CONFIG_FILENAME",
    "DEFAULT_CONFIG_DIR",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_TIMEOUT_SECONDS",
    "resolve_config",
]
