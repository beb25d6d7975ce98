"""
Logging configuration for the bit table tools
"""

import logging
import sys

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
DATE_FORMAT = '%H:%M:%S'


def setup_logging(verbose: bool = False, stream=None) -> logging.Logger:
    """
    Configure the root logger for command-line use.

    Table output goes to stdout, so log records go to stderr.

    Args:
        verbose: DEBUG level when True, WARNING otherwise
        stream: Output stream for the console handler (default: stderr)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)

    # Clear existing handlers (avoid duplicates)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    return root_logger


def get_logger(name: str = "bittable") -> logging.Logger:
    """Get a named logger."""
    return logging.getLogger(name)
