import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: int = logging.WARNING, console: Console | None = None):
    """
    Configures the root logger to use RichHandler.
    """
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
