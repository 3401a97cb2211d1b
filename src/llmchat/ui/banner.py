from __future__ import annotations
from typing import Optional, Sequence, Tuple

from pyfiglet import figlet_format
from rich.align import Align
from rich.console import Console
from rich.panel import Panel

TITLE = "LLM Chat"
SUBTITLE = "Type /help for commands, Enter twice to send"

# (max console width, figlet font); first match wins, last rule catches all
FONT_RULES: Sequence[Tuple[int, str]] = (
    (60, "small"),
    (100, "standard"),
    (10_000, "slant"),
)


def pick_font(width: int, rules: Sequence[Tuple[int, str]] = FONT_RULES) -> str:
    for max_width, name in rules:
        if width <= max_width:
            return name
    raise ValueError("No matching font rule for console width")


def render_banner(console: Console, version: Optional[str] = None, *, clear: bool = False) -> None:
    art = figlet_format(TITLE, font=pick_font(console.width))
    art = "\n".join(line.rstrip() for line in art.splitlines())
    panel = Panel(
        Align.center(art),
        title=f"v{version}" if version else None,
        subtitle=SUBTITLE,
        border_style="bright_blue",
        expand=True,
        padding=(0, 2, 0, 2),
    )
    if clear:
        console.clear()
    console.print(panel)
