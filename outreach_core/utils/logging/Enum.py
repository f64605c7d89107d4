"""
Logging enumerations.
"""

from enum import Enum


class LoggingFormat(str, Enum):
    """Output backends understood by LoggerAdaptor."""
    STANDARD = "standard"
    JSON = "json"
    DETAILED = "detailed"


class LogLevel(str, Enum):
    """Log levels accepted in logging configuration."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Environment(str, Enum):
    """Deployment environments with their own logging defaults."""
    DEV = "dev"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"
