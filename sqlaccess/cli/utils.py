"""Shared CLI utilities for sqlaccess."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

# Single console instance reused across CLI modules
console = Console()


def configure_logging(level: str = "INFO") -> None:
    """Route stdlib logging through rich for CLI runs.

    Args:
        level: Logging level name (e.g., "DEBUG", "INFO", "WARNING").
    """
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )

