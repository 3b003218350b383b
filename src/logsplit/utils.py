"""
Utility functions for logsplit.

Includes logging setup and the shared rich console.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

# Global console for pretty output
console = Console(stderr=True)


def setup_logging(log_level: str = "INFO", pretty: bool = True) -> logging.Logger:
    """
    Set up logging for the `logsplit` logger hierarchy.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        pretty: Use a rich handler instead of plain text

    Returns:
        Configured logger
    """
    logger = logging.getLogger("logsplit")
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.handlers = []  # Clear existing handlers

    if pretty:
        handler: logging.Handler = RichHandler(console=console, rich_tracebacks=True, show_time=False)
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))

    logger.addHandler(handler)
    return logger
