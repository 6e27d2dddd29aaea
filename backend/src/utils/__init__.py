"""
Utility modules for timekeeper backend.

This package contains shared utilities used across the application:
- logging_config: Named loggers with JSON (production) or console output
"""

from backend.src.utils.logging_config import get_logger, init_logging

__all__ = [
    "get_logger",
    "init_logging",
]
