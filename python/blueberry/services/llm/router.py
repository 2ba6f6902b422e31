"""LLM router for adapter selection and error normalization.

- Resolves the adapter for a provider name
- Wraps adapter streams with error normalization, in one place
- Emits llm.request.started / llm.request.finished / llm.request.failed
  events through safe_kv()

Error handling:
- Provider 401/403 -> E_LLM_INVALID_KEY
- Provider 429 -> E_LLM_RATE_LIMIT
- Timeout -> E_LLM_TIMEOUT
- Context too large -> E_LLM_CONTEXT_TOO_LARGE
- Other -> E_LLM_PROVIDER_DOWN
"""

import time
from collections.abc import AsyncIterator

import httpx

from blueberry.logging import get_logger
from blueberry.services.llm.adapter import LLMAdapter
from blueberry.services.llm.errors import LLMError, LLMErrorClass, classify_provider_error
from blueberry.services.llm.gemini_adapter import GeminiAdapter
from blueberry.services.llm.types import LLMChunk, LLMRequest
from blueberry.services.redact import safe_kv

logger = get_logger(__name__)

# Default timeout for LLM requests in seconds
DEFAULT_TIMEOUT_S = 45


class LLMRouter:
    """Routes LLM requests to provider adapters and normalizes their errors."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        adapters: dict[str, LLMAdapter] | None = None,
    ):
        """Initialize router with a shared HTTP client.

        Args:
            client: Shared httpx.AsyncClient for connection pooling.
            adapters: Override the provider adapters (tests).
        """
        self._client = client
        self._adapters: dict[str, LLMAdapter] = adapters or {"gemini": GeminiAdapter(client)}

    def resolve_adapter(self, provider: str) -> LLMAdapter:
        """Get the adapter for a provider.

        Raises:
            LLMError: If the provider is unknown.
        """
        adapter = self._adapters.get(provider)
        if adapter is None:
            raise LLMError(
                LLMErrorClass.MODEL_NOT_AVAILABLE,
                f"Unknown provider: {provider}",
                provider=provider,
            )
        return adapter

    def is_provider_available(self, provider: str) -> bool:
        return provider in self._adapters

    async def generate_stream(
        self,
        provider: str,
        req: LLMRequest,
        api_key: str,
        *,
        timeout_s: int = DEFAULT_TIMEOUT_S,
    ) -> AsyncIterator[LLMChunk]:
        """Streaming generation with error normalization.

        Yields:
            LLMChunk objects until the terminal chunk (done=True).

        Raises:
            LLMError: With a normalized error class on failure.
        """
        adapter = self.resolve_adapter(provider)
        base = {"provider": provider, "model_name": req.model_name, "max_tokens": req.max_tokens}

        logger.info(
            "llm.request.started",
            **safe_kv(**base, message_chars=sum(len(m.content) for m in req.messages)),
        )
        start = time.monotonic()

        def failed(error_class: LLMErrorClass) -> None:
            logger.error(
                "llm.request.failed",
                **safe_kv(
                    **base,
                    outcome="error",
                    error_class=error_class.value,
                    latency_ms=int((time.monotonic() - start) * 1000),
                ),
            )

        try:
            async for chunk in adapter.generate_stream(req, api_key=api_key, timeout_s=timeout_s):
                if chunk.done:
                    usage = chunk.usage
                    logger.info(
                        "llm.request.finished",
                        **safe_kv(
                            **base,
                            outcome="success",
                            latency_ms=int((time.monotonic() - start) * 1000),
                            tokens_input=usage.prompt_tokens if usage else None,
                            tokens_output=usage.completion_tokens if usage else None,
                        ),
                    )
                yield chunk

        except httpx.TimeoutException as e:
            failed(LLMErrorClass.TIMEOUT)
            raise LLMError(LLMErrorClass.TIMEOUT, "Stream timed out", provider=provider) from e

        except httpx.HTTPStatusError as e:
            error_class = classify_provider_error(
                provider, e.response.status_code, self._safe_parse_json(e.response)
            )
            failed(error_class)
            raise LLMError(
                error_class,
                f"Provider returned HTTP {e.response.status_code}",
                provider=provider,
            ) from e

        except httpx.NetworkError as e:
            failed(LLMErrorClass.PROVIDER_DOWN)
            raise LLMError(
                LLMErrorClass.PROVIDER_DOWN, "Network error during stream", provider=provider
            ) from e

        except LLMError as e:
            failed(e.error_class)
            raise

        except Exception as e:
            failed(LLMErrorClass.PROVIDER_DOWN)
            raise LLMError(
                LLMErrorClass.PROVIDER_DOWN,
                f"Unexpected stream error: {type(e).__name__}",
                provider=provider,
            ) from e

    def _safe_parse_json(self, response: httpx.Response) -> dict | None:
        """Parse a JSON error body, returning None when it is unreadable."""
        try:
            return response.json()
        except (ValueError, httpx.ResponseNotRead):
            return None
