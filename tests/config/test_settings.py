"""
Tests for Settings and the component factories.
"""

import pytest
from pydantic import ValidationError

from outreach_core import factory
from outreach_core.config import Settings, get_settings, reset_settings
from outreach_core.speech import DeepgramRecognitionBackend
from outreach_core.store import InMemoryRecordStore, PostgrestRecordStore
from outreach_core.transport import RetryableTransport, RetryPolicy
from outreach_core.workflows import WorkflowProvider


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings()
    yield
    reset_settings()


# ============================================================================
# Settings
# ============================================================================

class TestSettings:

    def test_defaults(self):
        settings = Settings()
        assert settings.n8n_base_url == ""
        assert settings.openrouter_base_url == "https://openrouter.ai/api/v1"
        assert settings.result_poll_interval_ms == 5000
        assert settings.result_timeout_ms == 300000
        assert settings.retry_policy() == RetryPolicy()

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("OUTREACH_N8N_BASE_URL", "https://hooks.example.com/webhook")
        monkeypatch.setenv("OUTREACH_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("OUTREACH_RETRY_DELAY_MS", "250")

        settings = get_settings()

        assert settings.n8n_base_url == "https://hooks.example.com/webhook"
        assert settings.retry_policy() == RetryPolicy(max_attempts=5, initial_delay_ms=250)

    def test_cached_until_reset(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("OUTREACH_APP_TITLE", "Changed")
        assert get_settings() is first
        reset_settings()
        assert get_settings().app_title == "Changed"

    def test_invalid_poll_interval(self):
        with pytest.raises(ValidationError):
            Settings(result_poll_interval_ms=0)


# ============================================================================
# Factories
# ============================================================================

class TestFactories:

    def test_record_store_falls_back_to_memory(self):
        assert isinstance(factory.build_record_store(Settings()), InMemoryRecordStore)

    def test_record_store_from_supabase_settings(self):
        store = factory.build_record_store(Settings(supabase_url="https://p.supabase.co", supabase_key="k"))
        assert isinstance(store, PostgrestRecordStore)
        assert store.supports_change_feed

    def test_dispatcher_has_both_providers(self):
        settings = Settings(n8n_base_url="https://hooks.example.com", mindpal_api_key="mp")
        dispatcher = factory.build_dispatcher(settings)
        assert set(dispatcher.providers) == {WorkflowProvider.N8N, WorkflowProvider.MINDPAL}
        assert dispatcher.policy == settings.retry_policy()

    def test_convergence_uses_settings(self):
        convergence = factory.build_convergence(
            Settings(result_poll_interval_ms=100, result_timeout_ms=1000),
            store=InMemoryRecordStore(),
        )
        assert convergence.poll_interval_ms == 100
        assert convergence.default_timeout_ms == 1000

    def test_chat_engine(self):
        engine = factory.build_chat_engine(Settings(openrouter_api_key="sk", app_url=""))
        assert engine.api_key == "sk"
        assert engine.transport.timeout_s == 30
        assert engine.stream_timeout_s == 300

    def test_upload_service_shares_transport(self):
        transport = RetryableTransport()
        service = factory.build_upload_service(Settings(), record_store=InMemoryRecordStore(), transport=transport)
        assert service.dispatcher.transport is transport

    def test_speech_service_support_follows_key(self):
        assert not factory.build_speech_service(Settings()).is_supported()
        service = factory.build_speech_service(Settings(deepgram_api_key="dg", speech_language="es-ES"))
        assert isinstance(service.backend, DeepgramRecognitionBackend)
        assert service.backend.config.lang == "es-ES"
