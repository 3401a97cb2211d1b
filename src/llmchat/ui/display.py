from __future__ import annotations
from typing import Dict, Optional, Sequence

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.rule import Rule
from rich.table import Table

from llmchat.assessment.analyzer import Assessment
from llmchat.providers.registry import ProviderInfo
from .banner import render_banner

USER_EMOJI = "👤"
ASSISTANT_EMOJI = "🤖"
SYSTEM_EMOJI = "⚙️"

HELP_TEXT = """\
[bold]Commands[/bold]
  /help              Show this help message
  /clear             Clear the screen
  /providers         List all providers and their availability
  /models            List models for the current provider
  /switch            Switch to a different model
  /use <provider>    Switch to a different provider
  /history           Show the current conversation
  /saved             Show recent saved conversations
  /search            Search saved conversations
  /export            Export the current conversation
  /stats             Show history statistics
  /reset             Start a new conversation
  /assess            Toggle prompt assessment
  /guide             Show prompt engineering best practices
  /improve <prompt>  Analyze and improve a prompt
  /id                Show the conversation id
  /exit, /quit       Exit

[bold]Tips[/bold]
  • Press Enter twice on empty lines to send multi-line input
  • Ctrl+C interrupts a reply that is still streaming
  • Conversations are saved to history when you exit
"""


class Display:
    """All terminal output of the interactive session goes through here."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(highlight=False)

    # --- chrome ---------------------------------------------------------

    def welcome(self, version: Optional[str] = None, *, clear: bool = False) -> None:
        render_banner(self.console, version, clear=clear)

    def clear(self) -> None:
        self.console.clear()

    def provider_info(self, name: str, model: str, status: str = "ready") -> None:
        self.console.print(
            f"[bright_blue]Provider: {escape(name)}[/] | Model: {escape(model)} [dim]| {escape(status)}[/]"
        )

    def separator(self) -> None:
        self.console.print(Rule(style="dim"))

    def user_prompt(self) -> str:
        return f"\n[bold bright_cyan]{USER_EMOJI} You:[/] "

    def help(self) -> None:
        self.console.print(HELP_TEXT)

    # --- messages -------------------------------------------------------

    def system(self, message: str) -> None:
        self.console.print(f"\n[bright_yellow]{SYSTEM_EMOJI} {escape(message)}[/]")

    def error(self, message: str) -> None:
        self.console.print(f"\n[bright_red]❌ Error: {escape(message)}[/]")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠️  {escape(message)}[/]")

    def success(self, message: str) -> None:
        self.console.print(f"[bright_green]✅ {escape(message)}[/]")

    def info(self, message: str) -> None:
        self.console.print(f"[bright_blue]ℹ️  {escape(message)}[/]")

    def text(self, message: str = "") -> None:
        self.console.print(message, markup=False)

    def markdown(self, text: str) -> None:
        self.console.print(Markdown(text))

    # --- streaming ------------------------------------------------------

    def assistant_prefix(self, model: str) -> None:
        self.console.print(
            f"\n[bright_magenta]{ASSISTANT_EMOJI} Assistant[/][dim] ({escape(model)})[/][bright_magenta]:[/] ",
            end="",
        )

    def chunk(self, content: str) -> None:
        self.console.out(content, end="", highlight=False)
        self.console.file.flush()

    def end_reply(self) -> None:
        self.console.out("")

    def thinking(self) -> None:
        self.console.print("[dim]💭 thinking...[/]")

    def metrics(self, elapsed: float, tokens: int) -> None:
        line = f"⏱️  Response time: {elapsed:.2f}s"
        if tokens > 0 and elapsed > 0:
            line += f" | Tokens: {tokens} ({tokens / elapsed:.1f} tok/s)"
        self.console.print(f"[dim]{line}[/]")

    # --- listings -------------------------------------------------------

    def model_list(self, models: Sequence[str], current: str) -> None:
        self.console.print("\n[bold]Available Models:[/]")
        for i, model in enumerate(models, 1):
            if model == current:
                self.console.print(f"[bright_green]▶ {i}. {escape(model)} (current)[/]")
            else:
                self.console.print(f"  {i}. {escape(model)}")

    def providers_table(self, snapshot: Dict[str, ProviderInfo], current: Optional[str] = None) -> None:
        table = Table(title="Providers", show_lines=False)
        table.add_column("", no_wrap=True)
        table.add_column("Provider")
        table.add_column("Status")
        table.add_column("Models / setup")
        for name, info in snapshot.items():
            meta = info.metadata
            label = f"{meta.display_name}" + (" (current)" if name == current else "")
            if info.available:
                detail = ", ".join(info.provider.models()) + f"\ndefault: {info.provider.default_model()}"
                status = "[green]available[/]"
            else:
                detail = f"Set {meta.env_var_key} to enable"
                status = "[red]not available[/]"
            table.add_row(meta.icon, escape(label), status, escape(detail))
        self.console.print(table)

    def assessment(self, result: Assessment) -> None:
        self.separator()
        self.console.print("[bright_blue]📊 PROMPT ASSESSMENT[/]")
        self.separator()
        color = "bright_green"
        if result.overall_score < 60:
            color = "bright_red"
        elif result.overall_score < 75:
            color = "bright_yellow"
        self.console.print(f"[{color}]Overall Score: {result.overall_score}/100 ({result.rating})[/]\n")
        for c in result.criteria:
            mark = "✅"
            if c.score < 4:
                mark = "⚠️ "
            if c.score < 3:
                mark = "❌"
            self.console.print(
                f"{mark} {c.name}: {c.score}/{c.max_score} ({c.status}) - {escape(c.description)}"
            )
        if result.recommendations:
            self.console.print("\n[bright_blue]💡 Recommendations:[/]")
            for i, rec in enumerate(result.recommendations[:5], 1):
                self.console.print(f"  {i}. {escape(rec)}")
        self.separator()
