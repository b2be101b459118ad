"""CLI package for EasyLLM."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from importlib import metadata
from pathlib import Path
from typing import Any

import httpx
import typer
from rich.table import Table

from easyllm.accumulate import ChunkAccumulator
from easyllm.client import EasyLLM
from easyllm.config import CONFIG_FILENAME, ClientConfig, ConfigManager
from easyllm.errors import EasyLLMError
from easyllm.files import read_file_content
from easyllm.types import ChatCompletionRequest

from .branding import create_chat_panel, themed_console
from .repl import ChatRepl

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "llama4-scout"

app = typer.Typer(help="EasyLLM client for OpenAI-compatible APIs", no_args_is_help=True)
config_app = typer.Typer(help="Manage the EasyLLM config file")
app.add_typer(config_app, name="config")

CLI_CONSOLE = themed_console()


@dataclass
class CLIState:
    manager: ConfigManager
    config: ClientConfig


def styled_echo(message: str = "", *, nl: bool = True) -> None:
    """Print using the EasyLLM themed console."""
    CLI_CONSOLE.print(message, end="" if not nl else "\n")


def _configure_logging(verbose: bool) -> None:
    root_logger = logging.getLogger()
    level = logging.DEBUG if verbose else logging.WARNING
    if root_logger.handlers:
        root_logger.setLevel(level)
    elif verbose:
        logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=level, format="%(message)s")


def _build_client(config: ClientConfig) -> EasyLLM:
    return EasyLLM(config)


def _run(coro: Any) -> Any:
    try:
        return asyncio.run(coro)
    except (EasyLLMError, httpx.HTTPError) as exc:
        styled_echo(f"❌ {exc}")
        raise typer.Exit(code=1) from exc


def _state(ctx: typer.Context) -> CLIState:
    return ctx.obj


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", help="Config file merged over the user config"),  # noqa: B008
    provider: str | None = typer.Option(None, "--provider", help="llm.vin, openai or custom"),  # noqa: B008
    base_url: str | None = typer.Option(None, "--base-url", help="Override the API base URL"),  # noqa: B008
    api_key: str | None = typer.Option(None, "--api-key", help="API key for this run (not persisted)"),  # noqa: B008
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),  # noqa: B008
) -> None:
    _configure_logging(verbose)

    project_config_path: Path | None = None
    if config is not None:
        project_config_path = config.expanduser()
        if not project_config_path.exists():
            styled_echo(f"❌ Config file '{project_config_path}' not found.")
            raise typer.Exit(code=1)
    else:
        candidate = Path.cwd() / ".easyllm" / CONFIG_FILENAME
        if candidate.exists():
            project_config_path = candidate

    manager = ConfigManager(project_config_path=project_config_path)
    try:
        client_config = manager.load(provider=provider, base_url=base_url, api_key=api_key)
    except EasyLLMError as exc:
        styled_echo(f"❌ {exc}")
        raise typer.Exit(code=1) from exc
    ctx.obj = CLIState(manager=manager, config=client_config)


async def _chat(
    config: ClientConfig,
    request: ChatCompletionRequest,
    files: list[Path],
    stream: bool,
) -> None:
    async with _build_client(config) as client:
        if files:
            attachments = [read_file_content(path) for path in files]
            file_messages = client.files.create_messages(attachments)
            request = request.model_copy(update={"messages": [*file_messages, *request.messages]})

        if not stream:
            response = await client.chat.completions.create_with_web_search(request)
            content = response.choices[0].message.content if response.choices else ""
            CLI_CONSOLE.print(create_chat_panel("assistant", content or "", use_markdown=True))
            return

        accumulator = ChunkAccumulator()
        async for chunk in client.chat.completions.stream_with_web_search(request):
            accumulator.add(chunk)
            for choice in chunk.choices:
                if choice.index == 0 and choice.delta.content:
                    CLI_CONSOLE.print(choice.delta.content, end="", markup=False, highlight=False)
        CLI_CONSOLE.print()
        logger.debug("Stream finished after %d chunks", accumulator.chunk_count)


@app.command()
def chat(
    ctx: typer.Context,
    prompt: str = typer.Argument(..., help="Message to send"),
    model: str = typer.Option(DEFAULT_MODEL, "--model", "-m", envvar="EASYLLM_MODEL"),  # noqa: B008
    system: str | None = typer.Option(None, "--system", help="System prompt"),  # noqa: B008
    stream: bool = typer.Option(True, "--stream/--no-stream", help="Stream the reply as it arrives"),  # noqa: B008
    web_search: bool | None = typer.Option(None, "--web-search/--no-web-search", help="Force web search on or off"),  # noqa: B008
    file: list[Path] = typer.Option([], "--file", "-f", help="Attach a text file (repeatable)"),  # noqa: B008
    temperature: float | None = typer.Option(None, "--temperature"),  # noqa: B008
    max_tokens: int | None = typer.Option(None, "--max-tokens"),  # noqa: B008
) -> None:
    """Send one chat message and print the reply."""
    messages: list[dict[str, Any]] = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})
    payload: dict[str, Any] = {"model": model, "messages": messages}
    if temperature is not None:
        payload["temperature"] = temperature
    if max_tokens is not None:
        payload["max_tokens"] = max_tokens
    if web_search is not None:
        payload["web_search"] = web_search
    request = ChatCompletionRequest.model_validate(payload)
    _run(_chat(_state(ctx).config, request, list(file), stream))


async def _repl(config: ClientConfig, model: str, system: str | None) -> None:
    async with _build_client(config) as client:
        await ChatRepl(client, model=model, console=CLI_CONSOLE, system_prompt=system).run()


@app.command()
def repl(
    ctx: typer.Context,
    model: str = typer.Option(DEFAULT_MODEL, "--model", "-m", envvar="EASYLLM_MODEL"),  # noqa: B008
    system: str | None = typer.Option(None, "--system", help="System prompt"),  # noqa: B008
) -> None:
    """Start an interactive, streaming chat session."""
    _run(_repl(_state(ctx).config, model, system))


async def _models(config: ClientConfig) -> None:
    async with _build_client(config) as client:
        response = await client.models.list()
    table = Table(title="Models")
    table.add_column("ID")
    table.add_column("Owner")
    for model in response.data:
        table.add_row(model.id, model.owned_by)
    CLI_CONSOLE.print(table)


@app.command()
def models(ctx: typer.Context) -> None:
    """List the models the endpoint serves."""
    _run(_models(_state(ctx).config))


async def _image(config: ClientConfig, prompt: str, n: int | None, size: str | None) -> None:
    payload: dict[str, Any] = {"prompt": prompt}
    if n is not None:
        payload["n"] = n
    if size is not None:
        payload["size"] = size
    async with _build_client(config) as client:
        response = await client.images.generate(payload)
    for image in response.data:
        styled_echo(image.url or f"<base64 image, {len(image.b64_json or '')} chars>")


@app.command()
def image(
    ctx: typer.Context,
    prompt: str = typer.Argument(..., help="Image description"),
    n: int | None = typer.Option(None, "--n", help="Number of images"),  # noqa: B008
    size: str | None = typer.Option(None, "--size", help="256x256, 512x512 or 1024x1024"),  # noqa: B008
) -> None:
    """Generate images from a prompt."""
    _run(_image(_state(ctx).config, prompt, n, size))


async def _moderate(config: ClientConfig, texts: list[str], model: str | None) -> None:
    payload: dict[str, Any] = {"input": texts if len(texts) > 1 else texts[0]}
    if model:
        payload["model"] = model
    async with _build_client(config) as client:
        response = await client.moderations.create(payload)
    for index, result in enumerate(response.results, start=1):
        if result.flagged:
            flagged = ", ".join(name for name, hit in result.categories.items() if hit)
            styled_echo(f"Text {index}: [easyllm.flagged]FLAGGED[/] ({flagged})")
        else:
            styled_echo(f"Text {index}: [easyllm.safe]SAFE[/]")


@app.command()
def moderate(
    ctx: typer.Context,
    texts: list[str] = typer.Argument(..., help="Text(s) to classify"),
    model: str | None = typer.Option(None, "--model", "-m"),  # noqa: B008
) -> None:
    """Run texts through the moderation endpoint."""
    _run(_moderate(_state(ctx).config, texts, model))


@config_app.command("init")
def config_init(ctx: typer.Context) -> None:
    """Write the resolved settings (without the API key) to the user config file."""
    state = _state(ctx)
    path = state.manager.save(state.config)
    styled_echo(f"✅ EasyLLM configuration saved to {path}")


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Print the resolved settings."""
    config = _state(ctx).config
    data = config.model_dump(mode="json")
    data["api_key"] = "set" if config.api_key else "unset"
    for key, value in data.items():
        styled_echo(f"{key}: {value}", nl=True)


@app.command()
def version() -> None:
    """Show CLI version."""
    try:
        pkg_version = metadata.version("easyllm")
    except metadata.PackageNotFoundError:
        pkg_version = "0.0.0"
    styled_echo(f"EasyLLM version {pkg_version}")


def main() -> None:
    """Console script entrypoint."""
    app()


__all__ = ["CLIState", "app", "main"]
