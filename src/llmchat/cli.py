from __future__ import annotations
from importlib.metadata import PackageNotFoundError, version as pkg_version
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from .bootstrap import build_app, select_provider
from .config import OUTPUT_FORMATS
from .core.chat_session import ChatSession
from .core.errors import ConfigError, ProviderError
from .core.interactive import InteractiveSession
from .core.shell import ShellMode, read_stdin
from .logs import setup_logging
from .storage.history import HistoryStore
from .ui.display import Display

app = typer.Typer(add_completion=False, help="Chat with local and hosted LLMs from the terminal.")

try:
    VERSION = pkg_version("llm-chat")
except PackageNotFoundError:
    VERSION = "0.0.0"


def _flag(value: bool, when_set: bool) -> Optional[bool]:
    # Unset flags must not override the config file
    return when_set if value else None


@app.callback(invoke_without_command=True)
def chat(
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Provider: ollama, groq, samba, together, gemini."),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model alias or vendor model id."),
    temperature: Optional[float] = typer.Option(None, "--temperature", "-t", help="Sampling temperature (0-2)."),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", help="Maximum tokens in a reply."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging and per-turn metrics."),
    shell: Optional[str] = typer.Option(None, "--shell", "-s", help="Answer one prompt (plus piped stdin) and exit."),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Shell output: text, json, markdown or raw."),
    assess: bool = typer.Option(False, "--assess", help="Score prompts before sending them."),
    auto_improve: bool = typer.Option(False, "--auto-improve", help="Offer to rewrite low-scoring prompts."),
    no_history: bool = typer.Option(False, "--no-history", help="Do not save this conversation."),
    config: Optional[Path] = typer.Option(None, "--config", help="YAML config file (default ~/.llm-chat/config.yaml)."),
    list_providers: bool = typer.Option(False, "--list-providers", help="Show providers and exit."),
    show_version: bool = typer.Option(False, "--version", help="Show the version and exit."),
):
    if show_version:
        typer.echo(f"llm-chat {VERSION}")
        raise typer.Exit()

    setup_logging(verbose)
    err = Display(Console(stderr=True, highlight=False))

    if output is not None and output.lower() not in OUTPUT_FORMATS:
        err.error(f"Unknown output format '{output}' (expected one of {', '.join(OUTPUT_FORMATS)})")
        raise typer.Exit(1)

    try:
        ctx = build_app(
            config,
            provider=provider.lower() if provider else None,
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            output_format=output.lower() if output else None,
            verbose=_flag(verbose, True),
            enable_assessment=_flag(assess or auto_improve, True),
            auto_improve=_flag(auto_improve, True),
            history_enabled=_flag(no_history, False),
        )
    except ConfigError as e:
        err.error(str(e))
        raise typer.Exit(1)

    cfg = ctx["cfg"]
    registry = ctx["registry"]

    if list_providers:
        Display().providers_table(registry.snapshot())
        raise typer.Exit()

    try:
        selection = select_provider(registry, cfg)
    except ConfigError as e:
        err.error(str(e))
        err.providers_table(registry.snapshot())
        raise typer.Exit(1)
    for note in selection.notes:
        err.warning(note)

    if shell is not None:
        mode = ShellMode(selection.provider, cfg, display=err)
        try:
            mode.execute(shell, read_stdin())
        except (ProviderError, ConfigError) as e:
            err.error(str(e))
            raise typer.Exit(1)
        except KeyboardInterrupt:
            raise typer.Exit(130)
        return

    session = ChatSession(
        selection.provider,
        temperature=cfg.temperature,
        max_tokens=cfg.max_tokens,
        timeout=cfg.timeout,
        system_prompt=cfg.system_prompt,
    )
    history = HistoryStore(cfg.history_path, cfg.max_history) if cfg.history_enabled else None
    InteractiveSession(session, registry, cfg, history=history, version=VERSION).run()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
