"""Rich console logging for migration runs."""

from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

# Third-party loggers kept at WARNING unless the run itself is at DEBUG.
NOISY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "psycopg")


def setup_logging(level: str = "INFO", console: Optional[Console] = None) -> int:
    """Route all logging through a RichHandler; returns the numeric level applied."""
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        numeric = logging.INFO

    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=False,
        show_path=False,
        markup=False,
    )
    logging.basicConfig(
        level=numeric,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    library_level = logging.DEBUG if numeric <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    if numeric != getattr(logging, level.upper(), None):
        logging.getLogger("catalog_migrator").warning(
            "Unknown LOG_LEVEL %r, using INFO", level
        )
    return numeric
