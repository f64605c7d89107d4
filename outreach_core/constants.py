"""
Constants for the Outreach core.

Single source of truth for logger names, environment variables, wire field
names, header names, collection names and default values.
"""

# ============================================================================
# LOGGER NAMES
# ============================================================================

LOGGER_ROOT = "outreach"
LOGGER_TRANSPORT = "outreach.transport"
LOGGER_DISPATCHER = "outreach.workflows.dispatcher"
LOGGER_CONVERGENCE = "outreach.workflows.convergence"
LOGGER_CHAT = "outreach.llms.chat"
LOGGER_STREAM = "outreach.llms.stream"
LOGGER_USAGE = "outreach.llms.usage"
LOGGER_SPEECH = "outreach.speech"
LOGGER_UPLOADS = "outreach.uploads"
LOGGER_STORE = "outreach.store"

# ============================================================================
# ENVIRONMENT
# ============================================================================

ENV_PREFIX = "OUTREACH_"

# ============================================================================
# RETRY DEFAULTS
# ============================================================================

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY_MS = 1000
DEFAULT_BACKOFF_FACTOR = 2.0
SERVER_ERROR_STATUS = 500

# ============================================================================
# HTTP
# ============================================================================

HEADER_CONTENT_TYPE = "Content-Type"
HEADER_AUTHORIZATION = "Authorization"
HEADER_N8N_API_KEY = "X-N8N-API-KEY"
HEADER_REFERER = "HTTP-Referer"
HEADER_TITLE = "X-Title"
HEADER_APIKEY = "apikey"
HEADER_PREFER = "Prefer"
CONTENT_TYPE_JSON = "application/json"
BEARER_PREFIX = "Bearer "

# ============================================================================
# WORKFLOWS
# ============================================================================

PROVIDER_N8N = "n8n"
PROVIDER_MINDPAL = "mindpal"

MINDPAL_URL_TEMPLATE = "https://api.mindpal.io/v1/agents/{workflow_name}/trigger"

N8N_DEFAULT_ESTIMATED_SECONDS = 30
MINDPAL_DEFAULT_ESTIMATED_SECONDS = 60

ESTIMATE_FIELDS = ("estimatedSeconds", "estimated_seconds", "estimatedTime")

# ============================================================================
# RESULT CONVERGENCE
# ============================================================================

RESULTS_COLLECTION = "workflow_results"
RESULTS_TASK_COLUMN = "webhook_id"
RESULTS_SCOPE_COLUMN = "user_id"
DEFAULT_POLL_INTERVAL_MS = 5000
DEFAULT_RESULT_TIMEOUT_MS = 300000
TIMEOUT_ERROR_MESSAGE = "Timeout waiting for result"

# ============================================================================
# LLM / CHAT COMPLETIONS
# ============================================================================

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
CHAT_COMPLETIONS_PATH = "chat/completions"
DEFAULT_APP_TITLE = "Outreach B2B Platform"

RESPONSE_FIELD_CHOICES = "choices"
RESPONSE_FIELD_MESSAGE = "message"
RESPONSE_FIELD_DELTA = "delta"
RESPONSE_FIELD_CONTENT = "content"
RESPONSE_FIELD_USAGE = "usage"
RESPONSE_FIELD_ERROR = "error"
RESPONSE_FIELD_PROMPT_TOKENS = "prompt_tokens"
RESPONSE_FIELD_COMPLETION_TOKENS = "completion_tokens"

STREAM_DATA_PREFIX = "data:"
STREAM_DONE_SENTINEL = "[DONE]"

USAGE_COLLECTION = "llm_usage"

# ============================================================================
# SPEECH
# ============================================================================

DEFAULT_SPEECH_LANGUAGE = "en-US"
DEEPGRAM_LISTEN_URL = "wss://api.deepgram.com/v1/listen"

# ============================================================================
# UPLOADS
# ============================================================================

UPLOADS_BUCKET = "uploads"
UPLOADS_COLLECTION = "file_uploads"
MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024
MAX_FILES_PER_UPLOAD = 5
ALLOWED_UPLOAD_TYPES = (
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
    "text/csv",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "image/png",
    "image/jpeg",
)
ANALYSIS_STATUS_PENDING = "pending_analysis"
