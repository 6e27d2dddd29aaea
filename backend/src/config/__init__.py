"""
Configuration module for timekeeper backend.

Provides centralized configuration for:
- Recurrence materialization bounds (default count, horizon)
- API pagination and CORS
"""

from backend.src.config.settings import AppSettings, get_settings

__all__ = [
    "AppSettings",
    "get_settings",
]
