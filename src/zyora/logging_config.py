"""Logging setup for scripts and host applications."""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: int | str | None = None, console: Console | None = None) -> None:
    """Route root logging through rich; level defaults to ``LOG_LEVEL`` or INFO."""

    desired_level = level or os.getenv("LOG_LEVEL", "INFO")
    logging.root.handlers.clear()
    handler = RichHandler(console=console, rich_tracebacks=True, show_path=False)
    logging.basicConfig(level=desired_level, format="%(message)s", datefmt="[%X]", handlers=[handler])
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
