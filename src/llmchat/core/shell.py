from __future__ import annotations
import json
import logging
import sys
from typing import Optional, TextIO

from llmchat.config import AppConfig
from llmchat.ui.display import Display
from .chat_session import ChatSession
from .errors import ConfigError
from .ports import Provider

logger = logging.getLogger(__name__)

LIVE_FORMATS = ("text", "raw")


def build_shell_prompt(prompt: str, stdin_content: str = "") -> str:
    """Prompt text, with piped input appended as a fenced block."""
    stdin_content = stdin_content.rstrip("\r\n")
    if stdin_content:
        return f"{prompt}\n\n```\n{stdin_content}\n```"
    return prompt


def format_output(content: str, fmt: str) -> str:
    if fmt == "json":
        return json.dumps({"response": content}, ensure_ascii=False)
    if fmt == "markdown":
        return f"# Response\n\n{content}"
    return content


def read_stdin(stream: Optional[TextIO] = None) -> str:
    """Everything piped on stdin; "" when stdin is a terminal."""
    stream = stream if stream is not None else sys.stdin
    if stream is None or stream.isatty():
        return ""
    return stream.read()


class ShellMode:
    """
    One non-interactive turn: no commands, no history, no UI chrome on stdout.
    text/raw output streams as it arrives; json/markdown is written once at
    the end.
    """

    def __init__(
        self,
        provider: Provider,
        cfg: AppConfig,
        *,
        out: Optional[TextIO] = None,
        display: Optional[Display] = None,
    ):
        self.provider = provider
        self.cfg = cfg
        self.out = out if out is not None else sys.stdout
        self.display = display

    def _write(self, text: str) -> None:
        self.out.write(text)
        self.out.flush()

    def execute(self, prompt: str, stdin_content: str = "") -> str:
        full = build_shell_prompt(prompt, stdin_content)
        if not full.strip():
            raise ConfigError("no input provided")

        session = ChatSession(
            self.provider,
            temperature=self.cfg.temperature,
            max_tokens=self.cfg.max_tokens,
            timeout=self.cfg.timeout,
            system_prompt=self.cfg.system_prompt,
        )
        live = self.cfg.output_format in LIVE_FORMATS
        logger.debug("shell turn via %s (%s output)", self.provider.name, self.cfg.output_format)

        try:
            result = session.run_turn(full, self._write if live else (lambda _text: None))
        finally:
            if live:
                self._write("\n")

        if not live:
            self._write(format_output(result.content, self.cfg.output_format) + "\n")
        if self.cfg.verbose and self.display is not None:
            self.display.metrics(result.elapsed, result.tokens)
        return result.content
