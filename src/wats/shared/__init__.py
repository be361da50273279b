"""Shared modules for wats.

This module provides functionality used by both the pytest plugin
and the command-line tool:
- Logging configuration and per-test log context
"""

from .logging import bind_test_context, clear_test_context, configure_logging, get_logger

__all__ = [
    "bind_test_context",
    "clear_test_context",
    "configure_logging",
    "get_logger",
]
