"""
Logging Module.

Provides unified logging infrastructure with support for:
- Multiple backends (standard, JSON, detailed)
- Environment-specific configuration
- Persistent structured context
- Duration logging
"""

from .LoggerAdaptor import LoggerAdaptor
from .Enum import LoggingFormat, LogLevel, Environment


__all__ = [
    "LoggerAdaptor",
    "LoggingFormat",
    "LogLevel",
    "Environment",
]
