import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from outreach_core.utils.logging.Enum import Environment, LoggingFormat


ENV_ENVIRONMENT = "OUTREACH_ENV"
ENV_LOG_LEVEL = "OUTREACH_LOG_LEVEL"
ENV_LOG_FORMAT = "OUTREACH_LOG_FORMAT"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Per-environment defaults used when no explicit config is provided
ENVIRONMENT_DEFAULTS: Dict[str, Dict[str, Any]] = {
    Environment.DEV.value: {"backend": LoggingFormat.DETAILED.value, "level": "DEBUG"},
    Environment.TEST.value: {"backend": LoggingFormat.STANDARD.value, "level": "DEBUG"},
    Environment.STAGING.value: {"backend": LoggingFormat.JSON.value, "level": "INFO"},
    Environment.PROD.value: {"backend": LoggingFormat.JSON.value, "level": "INFO"},
}


class LoggerAdaptor:
    """
    Unified Logger Adaptor that provides a consistent interface across different logging backends.

    The adaptor wraps a standard library logger and renders each record with
    one of three backends:
    - standard: ``message [key=value ...]``
    - json: one JSON object per record
    - detailed: ``[timestamp] LEVEL [name] message | Context: ...``

    Configuration is either passed explicitly or derived from the environment
    (OUTREACH_ENV, OUTREACH_LOG_LEVEL, OUTREACH_LOG_FORMAT).

    Usage:
    ```python
    from outreach_core.utils.logging import LoggerAdaptor

    logger = LoggerAdaptor.get_logger("outreach.transport")
    logger.info("Request sent", url=url, attempt=1)

    logger.set_context(workflow="company-research")
    logger.warning("Retrying")
    ```

    Args:
        name: Logger name (dotted, e.g. ``outreach.llms.chat``)
        environment: Environment name (dev, test, staging, prod) - optional
        config: Optional configuration dictionary with ``backend``, ``level``
               and ``format`` keys. Overrides environment-derived defaults.
    """

    _instances: Dict[str, "LoggerAdaptor"] = {}

    @classmethod
    def clear_instances(cls):
        """
        Clear all cached logger instances.

        Useful in tests that need a logger rebuilt with a new configuration.
        """
        for instance in cls._instances.values():
            instance.shutdown()
        cls._instances.clear()

    def __init__(self, name: str = "default", environment: str = None, config: Dict[str, Any] = None):
        self.environment = (environment or self._detect_environment()).lower()
        self.name = name
        self.config = self._resolve_config(config)
        self.backend = self.config.get("backend", LoggingFormat.JSON.value).lower()
        self.context: Dict[str, Any] = {}

        self.logger = logging.getLogger(self.name)
        self._configure_logger()

    @classmethod
    def get_logger(
            cls,
            name: str = "default",
            environment: str = None,
            config: Dict[str, Any] = None) -> "LoggerAdaptor":
        """
        Get or create a logger instance (singleton pattern per name/environment).

        Args:
            name: Logger name
            environment: Environment name (dev, test, staging, prod)
            config: Optional configuration dictionary

        Returns:
            LoggerAdaptor instance
        """
        env = (environment or cls._detect_environment()).lower()
        instance_key = f"{name}_{env}"
        if instance_key not in cls._instances:
            cls._instances[instance_key] = cls(name, env, config)
        return cls._instances[instance_key]

    @staticmethod
    def _detect_environment() -> str:
        """Detect current environment from env variables. Defaults to 'prod'."""
        return os.environ.get(ENV_ENVIRONMENT, Environment.PROD.value)

    def _resolve_config(self, config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Merge environment defaults, environment overrides and explicit config."""
        resolved = dict(ENVIRONMENT_DEFAULTS.get(self.environment, ENVIRONMENT_DEFAULTS[Environment.PROD.value]))
        if os.environ.get(ENV_LOG_LEVEL):
            resolved["level"] = os.environ[ENV_LOG_LEVEL]
        if os.environ.get(ENV_LOG_FORMAT):
            resolved["backend"] = os.environ[ENV_LOG_FORMAT]
        if config:
            resolved.update(config)
        return resolved

    def _configure_logger(self):
        """Attach a single console handler at the configured level."""
        self.logger.handlers.clear()
        level_str = str(self.config.get("level", "INFO")).upper()
        level = getattr(logging, level_str, logging.INFO)
        self.logger.setLevel(level)

        handler = logging.StreamHandler()
        handler.setLevel(level)
        if self.backend == LoggingFormat.STANDARD.value:
            handler.setFormatter(logging.Formatter(self.config.get("format", DEFAULT_FORMAT)))
        else:
            # json and detailed records are fully rendered by the adaptor
            handler.setFormatter(logging.Formatter("%(message)s"))
        self.logger.addHandler(handler)
        self.logger.propagate = bool(self.config.get("propagate", True))

    def _format_message(self, *args) -> str:
        """Format message from multiple arguments, similar to print()."""
        if not args:
            return ""
        if len(args) == 1 and isinstance(args[0], str):
            return args[0]
        return " ".join(str(arg) for arg in args)

    def _log_message(self, level: str, *args, **kwargs):
        """Log message based on backend type."""
        message = self._format_message(*args)
        all_context = {**self.context, **kwargs}

        if self.backend == LoggingFormat.JSON.value:
            self._log_json(level, message, **all_context)
        elif self.backend == LoggingFormat.DETAILED.value:
            self._log_detailed(level, message, **all_context)
        else:
            self._log_standard(level, message, **all_context)

    def _log_standard(self, level: str, message: str, **kwargs):
        """Log using standard Python logging."""
        if kwargs:
            extra_info = " ".join([f"{k}={v}" for k, v in kwargs.items()])
            message = f"{message} [{extra_info}]"
        self.logger.log(getattr(logging, level), message)

    def _log_json(self, level: str, message: str, **kwargs):
        """Log as a single JSON object."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "logger": self.name,
            "message": message,
        }
        log_data.update(kwargs)
        self.logger.log(getattr(logging, level), json.dumps(log_data, default=str))

    def _log_detailed(self, level: str, message: str, **kwargs):
        """Log with detailed context as formatted text."""
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        detailed_message = f"[{timestamp}] {level} [{self.name}] {message}"
        if kwargs:
            context_parts = [f"{k}={v}" for k, v in kwargs.items()]
            detailed_message += f" | Context: {', '.join(context_parts)}"
        self.logger.log(getattr(logging, level), detailed_message)

    def debug(self, *args, **kwargs):
        """Log debug message."""
        self._log_message("DEBUG", *args, **kwargs)

    def info(self, *args, **kwargs):
        """Log info message."""
        self._log_message("INFO", *args, **kwargs)

    def warning(self, *args, **kwargs):
        """Log warning message."""
        self._log_message("WARNING", *args, **kwargs)

    def error(self, *args, **kwargs):
        """Log error message."""
        self._log_message("ERROR", *args, **kwargs)

    def critical(self, *args, **kwargs):
        """Log critical message."""
        self._log_message("CRITICAL", *args, **kwargs)

    def set_context(self, **kwargs):
        """Set persistent context for structured logging."""
        self.context.update(kwargs)

    def clear_context(self):
        """Clear all persistent context."""
        self.context.clear()

    def log_duration(self, operation_name: str, duration_seconds: float, **kwargs) -> None:
        """
        Log the duration of an operation.

        Operations slower than ``slow_threshold_seconds`` (default 5s) are
        logged as warnings, everything else at debug level.

        Args:
            operation_name: Name/description of the operation
            duration_seconds: Duration in seconds
            **kwargs: Additional context for the log entry
        """
        duration_ms = duration_seconds * 1000
        if duration_ms < 1000:
            duration_str = f"{duration_ms:.2f}ms"
        elif duration_ms < 60000:
            duration_str = f"{duration_ms / 1000:.2f}s"
        else:
            minutes = int(duration_ms // 60000)
            seconds = (duration_ms % 60000) / 1000
            duration_str = f"{minutes}m{seconds:.1f}s"

        message = f"Operation '{operation_name}' completed in {duration_str}"
        log_kwargs = {
            "operation": operation_name,
            "duration_ms": round(duration_ms, 2),
            **kwargs,
        }
        if duration_seconds >= self.config.get("slow_threshold_seconds", 5.0):
            self.warning(message, **log_kwargs)
        else:
            self.debug(message, **log_kwargs)

    def shutdown(self):
        """Flush and detach handlers, clear context."""
        for handler in self.logger.handlers[:]:
            handler.flush()
            handler.close()
            self.logger.removeHandler(handler)
        self.context.clear()
