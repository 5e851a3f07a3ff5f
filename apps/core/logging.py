"""Logging configuration for Mod Garage."""

import logging
import sys


def setup_logging(level: str = "INFO", module_name: str = "") -> logging.Logger:
    """Configure and return a logger with consistent formatting.

    Called once at startup; the root logger is configured by default so that
    every ``logging.getLogger(__name__)`` in the apps inherits the handler.
    """
    logger = logging.getLogger(module_name)

    if logger.handlers:
        return logger

    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger
