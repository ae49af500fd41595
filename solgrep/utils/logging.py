from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_debug: bool = False
_created_logger_names: set[str] = set()


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    _created_logger_names.add(name)
    logger.setLevel(logging.DEBUG if _debug else logging.INFO)
    return logger


def set_debug(debug: bool) -> None:
    global _debug
    _debug = debug
    for name in _created_logger_names:
        get_logger(name).setLevel(logging.DEBUG if _debug else logging.INFO)


def configure_logging(console: Console | None = None) -> None:
    """Attach a rich handler (stderr) to the root logger unless one is configured."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console or Console(stderr=True), show_path=False)],
    )
