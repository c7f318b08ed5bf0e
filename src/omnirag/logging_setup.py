"""Logging configuration shared by the CLI and the API server."""

import logging

from rich.logging import RichHandler


def configure_logging(level: str = "INFO") -> None:
    """Route the root logger through a Rich handler at the given level."""
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
