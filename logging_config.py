"""Logging configuration for the application."""

import logging
import sys


class ConsoleHandler(logging.StreamHandler):
    """Stdout handler installed once on the root logger."""


def setup_logging(level: str = "INFO"):
    """Configure logging for the application."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Avoid stacking handlers when the app factory runs more than once
    if not any(isinstance(h, ConsoleHandler) for h in root_logger.handlers):
        console_handler = ConsoleHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        root_logger.addHandler(console_handler)

    # Set higher log levels for noisy components
    logging.getLogger('pymongo').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)
