"""Interactive chat loop for the EasyLLM CLI."""

from __future__ import annotations

import logging
import os
from collections.abc import Awaitable, Callable
from pathlib import Path

import httpx
from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory
from rich.console import Console

from easyllm.accumulate import ChunkAccumulator
from easyllm.client import EasyLLM
from easyllm.errors import EasyLLMError
from easyllm.types import ChatCompletionRequest, ChatMessage

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_PATH = Path(os.environ.get("EASYLLM_HOME", Path.home() / ".easyllm")) / "history"
EXIT_COMMANDS = {"/exit", "/quit"}

PromptFn = Callable[[str], Awaitable[str]]


def _default_prompt_fn(history_path: Path) -> PromptFn:
    history_path.parent.mkdir(parents=True, exist_ok=True)
    session: PromptSession[str] = PromptSession(history=FileHistory(str(history_path)))
    return session.prompt_async


class ChatRepl:
    """Keeps a running conversation and streams each reply to the console."""

    def __init__(
        self,
        client: EasyLLM,
        *,
        model: str,
        console: Console,
        system_prompt: str | None = None,
        prompt_fn: PromptFn | None = None,
        history_path: Path | None = None,
    ) -> None:
        self.client = client
        self.model = model
        self.console = console
        self.system_prompt = system_prompt
        self.messages: list[ChatMessage] = []
        self._prompt = prompt_fn or _default_prompt_fn(history_path or DEFAULT_HISTORY_PATH)
        self.reset()

    def reset(self) -> None:
        self.messages = []
        if self.system_prompt:
            self.messages.append(ChatMessage(role="system", content=self.system_prompt))

    async def run(self) -> None:
        self.console.print(
            f"[easyllm.info.header]EasyLLM chat[/] [easyllm.text.secondary]model={self.model}; "
            "/websearch on|off, /clear, /exit[/]"
        )
        while True:
            try:
                user_input = (await self._prompt("› ")).strip()
            except (EOFError, KeyboardInterrupt):
                break
            if not user_input:
                continue
            if user_input in EXIT_COMMANDS:
                break
            if self.handle_command(user_input):
                continue
            await self.send(user_input)
        self.console.print("Bye!")

    def handle_command(self, user_input: str) -> bool:
        """Apply a slash command; returns False for ordinary chat input."""

        if not user_input.startswith("/"):
            return False
        parts = user_input.split()
        if parts[0] == "/clear":
            self.reset()
            self.console.print("[easyllm.text.secondary]Conversation cleared.[/]")
        elif parts[0] == "/websearch" and len(parts) == 2 and parts[1] in {"on", "off"}:
            self.client.set_web_search_enabled(parts[1] == "on")
            self.console.print(f"[easyllm.text.secondary]Web search {parts[1]}.[/]")
        else:
            self.console.print(f"Unknown command: {parts[0]}")
        return True

    async def send(self, user_input: str) -> str | None:
        self.messages.append(ChatMessage(role="user", content=user_input))
        request = ChatCompletionRequest(model=self.model, messages=list(self.messages))
        accumulator = ChunkAccumulator()
        try:
            async for chunk in self.client.chat.completions.stream_with_web_search(request):
                accumulator.add(chunk)
                for choice in chunk.choices:
                    if choice.index == 0 and choice.delta.content:
                        self.console.print(choice.delta.content, end="", markup=False, highlight=False)
        except (EasyLLMError, httpx.HTTPError) as exc:
            self.messages.pop()
            self.console.print(f"\n❌ {exc}")
            return None
        self.console.print()
        reply = accumulator.text
        self.messages.append(ChatMessage(role="assistant", content=reply))
        logger.debug("Received %d chunks", accumulator.chunk_count)
        return reply


__all__ = ["ChatRepl", "DEFAULT_HISTORY_PATH"]
