"""
Component Factories.

Build explicitly constructed, dependency-injected components from Settings.
Nothing here is cached: every call returns new instances, and collaborators
(transport, stores) can be passed in to share them or to substitute doubles.

Usage:
    settings = get_settings()
    transport = build_transport(settings)
    store = build_record_store(settings)

    dispatcher = build_dispatcher(settings, transport)
    convergence = build_convergence(settings, store)
    engine = build_chat_engine(settings, transport, store)
"""

from typing import Optional

from outreach_core.config import Settings, get_settings
from outreach_core.llms import ChatCompletionEngine, ModelRouter, UsageTracker
from outreach_core.speech import DeepgramRecognitionBackend, SpeechToTextService
from outreach_core.store import InMemoryRecordStore, IRecordStore, PostgrestRecordStore, RealtimeChangeFeed
from outreach_core.transport import RetryableTransport
from outreach_core.uploads import FileUploadService, IObjectStore, S3ObjectStore
from outreach_core.workflows import ResultConvergence, WorkflowDispatcher, mindpal_provider, n8n_provider


def build_transport(settings: Optional[Settings] = None) -> RetryableTransport:
    settings = settings or get_settings()
    return RetryableTransport(
        default_policy=settings.retry_policy(),
        timeout_s=settings.http_timeout_ms / 1000,
    )


def build_record_store(settings: Optional[Settings] = None) -> IRecordStore:
    """
    Durable store from settings.

    Falls back to an InMemoryRecordStore when no Supabase URL/key is configured.
    """
    settings = settings or get_settings()
    if not settings.supabase_url or not settings.supabase_key:
        return InMemoryRecordStore()
    return PostgrestRecordStore(
        base_url=settings.supabase_url,
        api_key=settings.supabase_key,
        change_feed=RealtimeChangeFeed(settings.supabase_url, settings.supabase_key),
        timeout_s=settings.http_timeout_ms / 1000,
    )


def build_dispatcher(
    settings: Optional[Settings] = None,
    transport: Optional[RetryableTransport] = None,
) -> WorkflowDispatcher:
    settings = settings or get_settings()
    return WorkflowDispatcher(
        providers=[
            n8n_provider(settings.n8n_base_url, settings.n8n_api_key),
            mindpal_provider(settings.mindpal_api_key, settings.mindpal_url_template),
        ],
        transport=transport or build_transport(settings),
        policy=settings.retry_policy(),
    )


def build_convergence(
    settings: Optional[Settings] = None,
    store: Optional[IRecordStore] = None,
) -> ResultConvergence:
    settings = settings or get_settings()
    return ResultConvergence(
        store=store or build_record_store(settings),
        poll_interval_ms=settings.result_poll_interval_ms,
        default_timeout_ms=settings.result_timeout_ms,
    )


def build_chat_engine(
    settings: Optional[Settings] = None,
    transport: Optional[RetryableTransport] = None,
    usage_store: Optional[IRecordStore] = None,
    router: Optional[ModelRouter] = None,
) -> ChatCompletionEngine:
    """
    Chat engine from settings.

    Usage rows are persisted only when ``usage_store`` is given.
    """
    settings = settings or get_settings()
    return ChatCompletionEngine(
        transport=transport or build_transport(settings),
        api_key=settings.openrouter_api_key,
        base_url=settings.openrouter_base_url,
        app_url=settings.app_url,
        app_title=settings.app_title,
        router=router,
        usage_tracker=UsageTracker(store=usage_store),
        policy=settings.retry_policy(),
        stream_timeout_s=settings.stream_timeout_ms / 1000,
    )


def build_upload_service(
    settings: Optional[Settings] = None,
    record_store: Optional[IRecordStore] = None,
    object_store: Optional[IObjectStore] = None,
    dispatcher: Optional[WorkflowDispatcher] = None,
    transport: Optional[RetryableTransport] = None,
) -> FileUploadService:
    """
    Upload service from settings.

    Without a ``dispatcher`` one is built over ``transport``, which the caller
    owns and closes. When neither is given a new transport is built; close it
    with ``await service.dispatcher.transport.close()``.
    """
    settings = settings or get_settings()
    return FileUploadService(
        object_store=object_store or S3ObjectStore(
            bucket_name=settings.uploads_bucket,
            region=settings.aws_region,
            endpoint_url=settings.s3_endpoint_url,
        ),
        record_store=record_store or build_record_store(settings),
        dispatcher=dispatcher or build_dispatcher(settings, transport),
    )


def build_speech_service(settings: Optional[Settings] = None) -> SpeechToTextService:
    """Speech service over Deepgram; unsupported when no Deepgram key is configured."""
    settings = settings or get_settings()
    backend = DeepgramRecognitionBackend(settings.deepgram_api_key) if settings.deepgram_api_key else None
    return SpeechToTextService(backend, language=settings.speech_language)
