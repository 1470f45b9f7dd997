"""Logging setup for the CLI. Library modules only call ``logging.getLogger``."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def level_from_name(name: str) -> int:
    return _LEVELS.get((name or "").lower(), logging.INFO)


def configure_logging(level: str = "info") -> None:
    """Route the ``agt`` logger through a rich handler on stderr."""
    logger = logging.getLogger("agt")
    logger.setLevel(level_from_name(level))

    for handler in list(logger.handlers):
        if getattr(handler, "_agt_handler", False):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
        markup=False,
    )
    handler._agt_handler = True  # type: ignore[attr-defined]
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
