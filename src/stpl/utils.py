"""Shared logging setup"""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

# stderr only: stdout carries rendered documents
console = Console(stderr=True)


def setup_logging(verbose: bool = False, level: str | int | None = None) -> None:
    """Configure logging for stpl.

    Log levels:
    - Normal: only warnings/errors shown (or ``level`` when given)
    - Verbose (-v): INFO level - spawn/exit of dynamic render children
    - Debug (STPL_DEBUG=1): DEBUG level - shows everything
    """
    if os.environ.get("STPL_DEBUG"):
        resolved: str | int = logging.DEBUG
    elif verbose:
        resolved = logging.INFO
    else:
        resolved = level if level is not None else logging.WARNING
    if isinstance(resolved, str):
        resolved = resolved.upper()

    handler = RichHandler(
        console=console,
        show_time=verbose,
        show_path=bool(os.environ.get("STPL_DEBUG")),
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))

    stpl_logger = logging.getLogger("stpl")
    stpl_logger.setLevel(resolved)
    stpl_logger.handlers = [handler]
    stpl_logger.propagate = False
