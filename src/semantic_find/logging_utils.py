"""Logging setup for the command-line entry points."""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: str | None = None, console: Console | None = None) -> None:
    """Configure the root logger once; later calls are no-ops."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    level_name = (level or os.getenv("SEMANTIC_FIND_LOG_LEVEL", "WARNING")).upper()
    resolved_level = getattr(logging, level_name, logging.WARNING)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    root_logger.setLevel(resolved_level)
    root_logger.addHandler(handler)
