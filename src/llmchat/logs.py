"""
Logging configuration for the CLI.
"""
from __future__ import annotations
import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "llmchat"


def setup_logging(verbose: bool = False) -> logging.Logger:
    """
    Send the package's log records to stderr through rich. WARNING by
    default, DEBUG with --verbose. Safe to call more than once.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Avoid duplicate handlers
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=verbose,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(handler)
        logger.propagate = False
    for h in logger.handlers:
        h.setLevel(level)
    return logger
