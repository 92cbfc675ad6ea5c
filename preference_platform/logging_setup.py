"""
Logging setup.

Core modules log through `logging.getLogger(__name__)`; the CLI calls
`setup_logging` once to route everything through rich.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: str = "INFO", console: Optional[Console] = None) -> None:
    """
    Configure the root logger with a rich handler.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        console: Console to log to (stderr if None)
    """
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
