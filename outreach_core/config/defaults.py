"""
Default Configuration Values

Fallback values used when environment variables are not provided.
Environment variables (prefix OUTREACH_) always take priority.
"""

from outreach_core import constants


class Defaults:
    """Default configuration values for the Outreach core."""

    # =========================================================================
    # Automation Backends
    # =========================================================================
    N8N_BASE_URL = ""
    MINDPAL_URL_TEMPLATE = constants.MINDPAL_URL_TEMPLATE

    # =========================================================================
    # LLM Provider
    # =========================================================================
    OPENROUTER_BASE_URL = constants.OPENROUTER_BASE_URL
    APP_URL = "http://localhost:5173"
    APP_TITLE = constants.DEFAULT_APP_TITLE

    # =========================================================================
    # Retry Configuration
    # =========================================================================
    MAX_ATTEMPTS = constants.DEFAULT_MAX_ATTEMPTS
    RETRY_DELAY_MS = constants.DEFAULT_INITIAL_DELAY_MS
    RETRY_BACKOFF_FACTOR = constants.DEFAULT_BACKOFF_FACTOR

    # =========================================================================
    # Timeout Configuration (milliseconds)
    # =========================================================================
    HTTP_TIMEOUT_MS = 30000
    STREAM_TIMEOUT_MS = 300000
    RESULT_POLL_INTERVAL_MS = constants.DEFAULT_POLL_INTERVAL_MS
    RESULT_TIMEOUT_MS = constants.DEFAULT_RESULT_TIMEOUT_MS

    # =========================================================================
    # Storage
    # =========================================================================
    SUPABASE_URL = ""
    UPLOADS_BUCKET = constants.UPLOADS_BUCKET
    AWS_REGION = "us-west-2"

    # =========================================================================
    # Speech
    # =========================================================================
    SPEECH_LANGUAGE = constants.DEFAULT_SPEECH_LANGUAGE
