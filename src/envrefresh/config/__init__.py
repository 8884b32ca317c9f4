"""
envrefresh configuration.

Pydantic-based settings read from ENVREFRESH_* environment variables
and an optional .env file.
"""

from envrefresh.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
