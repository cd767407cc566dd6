"""
Configuration for the staging API.

Settings come from environment variables (or .env); see settings.Settings
for every option and its default.
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
