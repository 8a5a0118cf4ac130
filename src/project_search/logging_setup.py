"""
Logging setup for the CLI and the HTTP server.

Library modules only create ``logging.getLogger(__name__)`` loggers; handlers
are installed here by the entry points.
"""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

ENV_LOG_LEVEL = "PROJECT_SEARCH_LOG_LEVEL"


def configure_logging(level: str | int | None = None) -> None:
    """Route package logs to stderr through rich."""
    resolved = level or os.getenv(ENV_LOG_LEVEL, "WARNING")
    if isinstance(resolved, str):
        resolved = resolved.upper()
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    package_logger = logging.getLogger("project_search")
    package_logger.handlers = [handler]
    package_logger.setLevel(resolved)
    package_logger.propagate = False
