"""Listeners for the observer registry's global event stream."""

from .logging_handler import LoggingEventHandler

__all__ = [
    "LoggingEventHandler",
]
