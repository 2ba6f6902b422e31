"""Tests for logging context and the never-log policy.

Covers:
- Redaction utilities (hash_text, safe_kv)
- Logging ContextVars (request_id, path, method, turn_id)
- LLM router event emission (llm.request.started / finished / failed)
- No prompt, message text or API key in emitted events
"""

import httpx
import pytest
import respx
import structlog
from structlog.testing import capture_logs

from blueberry.logging import (
    add_request_context,
    clear_request_context,
    configure_logging,
    get_logger,
    set_request_context,
    set_turn_id,
)
from blueberry.services.llm import LLMError, LLMRequest, LLMRouter, Turn
from blueberry.services.redact import FORBIDDEN_KEYS, hash_text, safe_kv
from tests.helpers import GEMINI_STREAM_URL, SUCCESS_STREAM

# ─── Redaction Unit Tests ────────────────────────────────────────────────


class TestHashText:
    def test_stable_output(self):
        assert hash_text("hello") == hash_text("hello")

    def test_different_inputs_differ(self):
        assert hash_text("hello") != hash_text("world")

    def test_returns_hex_string(self):
        result = hash_text("test")
        assert len(result) == 64
        assert all(c in "0123456789abcdef" for c in result)


class TestSafeKv:
    def test_allows_safe_keys(self):
        assert safe_kv(highlight_id="h1", latency_ms=5) == {"highlight_id": "h1", "latency_ms": 5}

    def test_allows_redacted_suffix_keys(self):
        result = safe_kv(message_chars=12, prompt_sha256="abc")
        assert result == {"message_chars": 12, "prompt_sha256": "abc"}

    @pytest.mark.parametrize("key", sorted(FORBIDDEN_KEYS))
    def test_all_forbidden_keys_blocked(self, key):
        with pytest.raises(ValueError, match=key):
            safe_kv(_env="test", **{key: "x"})

    def test_prod_passes_through(self):
        assert safe_kv(_env="prod", content="x") == {"content": "x"}


# ─── Logging ContextVars ─────────────────────────────────────────────────


class TestRequestContext:
    def setup_method(self):
        clear_request_context()

    def teardown_method(self):
        clear_request_context()

    def test_path_and_method_injected(self):
        set_request_context("req-1", path="/chat", method="POST")
        event_dict = add_request_context(None, "info", {})
        assert event_dict == {"request_id": "req-1", "path": "/chat", "method": "POST"}

    def test_turn_id_injected(self):
        set_request_context("req-1")
        set_turn_id("turn-9")
        assert add_request_context(None, "info", {})["turn_id"] == "turn-9"

    def test_clear_clears_all(self):
        set_request_context("req-1", path="/x", method="GET")
        set_turn_id("turn-9")
        clear_request_context()
        assert add_request_context(None, "info", {}) == {}


# ─── LLM Router Events ───────────────────────────────────────────────────


@pytest.fixture
def llm_request() -> LLMRequest:
    return LLMRequest(
        model_name="test-model",
        messages=[
            Turn(role="system", content="SECRET SYSTEM PROMPT"),
            Turn(role="user", content="SECRET USER TEXT"),
        ],
        max_tokens=100,
    )


def assert_no_sensitive_data(events: list[dict]) -> None:
    rendered = repr(events)
    assert "SECRET" not in rendered
    assert "sk-test-key" not in rendered


class TestRouterEvents:
    @pytest.mark.asyncio
    @respx.mock
    async def test_success_emits_started_and_finished(self, llm_request):
        respx.post(GEMINI_STREAM_URL).respond(200, content=SUCCESS_STREAM)
        router = LLMRouter(httpx.AsyncClient())

        with capture_logs() as events:
            async for _ in router.generate_stream("gemini", llm_request, "sk-test-key"):
                pass

        names = [e["event"] for e in events]
        assert "llm.request.started" in names
        finished = next(e for e in events if e["event"] == "llm.request.finished")
        assert finished["outcome"] == "success"
        assert finished["tokens_output"] == 3
        assert_no_sensitive_data(events)

    @pytest.mark.asyncio
    @respx.mock
    async def test_failure_emits_failed_with_class(self, llm_request):
        respx.post(GEMINI_STREAM_URL).respond(
            429, json={"error": {"status": "RESOURCE_EXHAUSTED"}}
        )
        router = LLMRouter(httpx.AsyncClient())

        with capture_logs() as events:
            with pytest.raises(LLMError):
                async for _ in router.generate_stream("gemini", llm_request, "sk-test-key"):
                    pass

        failed = next(e for e in events if e["event"] == "llm.request.failed")
        assert failed["error_class"] == "E_LLM_RATE_LIMIT"
        assert_no_sensitive_data(events)


# ─── Logger Caching ──────────────────────────────────────────────────────


class TestLoggerCaching:
    def test_configure_logging_cache_flag(self):
        configure_logging(json_format=False, cache_loggers=False)
        assert structlog.get_config()["cache_logger_on_first_use"] is False

    def test_capture_sees_logger_used_after_app_startup(self, app):
        logger = get_logger("blueberry.tests.warm")
        logger.info("warmed_up")

        with capture_logs() as events:
            logger.info("highlight_refresh_failed", error="TransportError")

        assert [e["event"] for e in events] == ["highlight_refresh_failed"]
