"""
Configuration Module

Provides centralized configuration with environment variable support.
"""

from .settings import Settings, get_settings, reset_settings
from .defaults import Defaults

__all__ = [
    "Settings",
    "get_settings",
    "reset_settings",
    "Defaults",
]
