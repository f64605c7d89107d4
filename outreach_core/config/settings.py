"""
Application Settings

Centralized settings with environment variable support.
Priority: Environment Variables > Defaults

Usage:
    from outreach_core.config import get_settings

    settings = get_settings()
    base_url = settings.n8n_base_url

Missing credentials are not validation errors: components that need them
report a ConfigurationMissing outcome at call time instead.
"""

from functools import lru_cache
from typing import Any, Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from outreach_core import constants
from outreach_core.transport.spec import RetryPolicy
from .defaults import Defaults


class Settings(BaseSettings):
    """
    Outreach settings with automatic environment variable loading.

    Environment variables are loaded with the prefix OUTREACH_.
    Example: OUTREACH_N8N_BASE_URL overrides n8n_base_url
    """

    # =========================================================================
    # Automation Backends
    # =========================================================================
    n8n_base_url: str = Field(
        default=Defaults.N8N_BASE_URL,
        description="Base URL of the n8n webhook endpoint",
    )
    n8n_api_key: Optional[str] = Field(default=None, description="Optional n8n API key")
    mindpal_api_key: Optional[str] = Field(default=None, description="MindPal API key")
    mindpal_url_template: str = Field(default=Defaults.MINDPAL_URL_TEMPLATE)

    # =========================================================================
    # LLM Provider
    # =========================================================================
    openrouter_api_key: Optional[str] = Field(default=None, description="OpenRouter API key")
    openrouter_base_url: str = Field(default=Defaults.OPENROUTER_BASE_URL)
    app_url: str = Field(default=Defaults.APP_URL, description="Sent as HTTP-Referer")
    app_title: str = Field(default=Defaults.APP_TITLE, description="Sent as X-Title")

    # =========================================================================
    # Retry Configuration
    # =========================================================================
    max_attempts: int = Field(default=Defaults.MAX_ATTEMPTS, ge=1)
    retry_delay_ms: float = Field(default=Defaults.RETRY_DELAY_MS, ge=0)
    retry_backoff_factor: float = Field(default=Defaults.RETRY_BACKOFF_FACTOR, ge=1)

    # =========================================================================
    # Timeout Configuration
    # =========================================================================
    http_timeout_ms: int = Field(default=Defaults.HTTP_TIMEOUT_MS)
    stream_timeout_ms: int = Field(default=Defaults.STREAM_TIMEOUT_MS)
    result_poll_interval_ms: int = Field(default=Defaults.RESULT_POLL_INTERVAL_MS, gt=0)
    result_timeout_ms: int = Field(default=Defaults.RESULT_TIMEOUT_MS, ge=0)

    # =========================================================================
    # Storage
    # =========================================================================
    supabase_url: str = Field(default=Defaults.SUPABASE_URL)
    supabase_key: Optional[str] = Field(default=None)
    uploads_bucket: str = Field(default=Defaults.UPLOADS_BUCKET)
    aws_region: str = Field(default=Defaults.AWS_REGION)
    s3_endpoint_url: Optional[str] = Field(default=None, description="Custom endpoint (LocalStack)")

    # =========================================================================
    # Speech
    # =========================================================================
    deepgram_api_key: Optional[str] = Field(default=None)
    speech_language: str = Field(default=Defaults.SPEECH_LANGUAGE)

    model_config = {
        "env_prefix": constants.ENV_PREFIX,
        "case_sensitive": False,
        "extra": "ignore",
    }

    def retry_policy(self) -> RetryPolicy:
        """Build the retry policy described by these settings."""
        return RetryPolicy(
            max_attempts=self.max_attempts,
            initial_delay_ms=self.retry_delay_ms,
            backoff_factor=self.retry_backoff_factor,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Export settings to dictionary."""
        return self.model_dump()


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Call reset_settings() after changing the environment (tests).
    """
    return Settings()


def reset_settings() -> None:
    """Clear the cached settings so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
