"""Logging module for the relay."""

from .setup import LOGGER_NAME, logger, setup_logging

__all__ = [
    "LOGGER_NAME",
    "logger",
    "setup_logging",
]
