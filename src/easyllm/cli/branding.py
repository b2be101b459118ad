"""Console styling for the EasyLLM CLI."""

from __future__ import annotations

from typing import Any

from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text
from rich.theme import Theme

EASYLLM_THEME = Theme(
    {
        "easyllm.user.border": "#A855F7",
        "easyllm.user.header": "bold #A855F7",
        "easyllm.user.text": "#E6FFFA",
        "easyllm.assistant.border": "#14F195",
        "easyllm.assistant.header": "bold #14F195",
        "easyllm.assistant.text": "#E6FFFA",
        "easyllm.info.border": "#38BDF8",
        "easyllm.info.header": "bold #38BDF8",
        "easyllm.info.text": "#E6FFFA",
        "easyllm.flagged": "bold #FB7185",
        "easyllm.safe": "bold #14F195",
        "easyllm.text.secondary": "#94A3B8",
        "easyllm.prompt": "bold #A855F7",
    }
)


def themed_console(**kwargs: Any) -> Console:
    """Return a Console configured with the EasyLLM theme."""
    return Console(theme=EASYLLM_THEME, **kwargs)


def create_chat_panel(role: str, message: str, *, use_markdown: bool = False) -> Panel:
    """Create a rounded panel for a user, assistant, or system message."""
    if role == "user":
        header = "You"
    elif role == "assistant":
        header = "Assistant"
    else:
        role = "info"
        header = "System"

    if use_markdown and role == "assistant":
        content: Any = Markdown(message, code_theme="monokai")
    else:
        content = Text(message, style=f"easyllm.{role}.text")

    return Panel(
        content,
        title=f"[easyllm.{role}.header]{header}[/]",
        title_align="left",
        border_style=f"easyllm.{role}.border",
        box=box.ROUNDED,
        padding=(1, 2),
        expand=False,
    )


__all__ = ["EASYLLM_THEME", "create_chat_panel", "themed_console"]
