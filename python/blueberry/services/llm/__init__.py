"""LLM adapter layer.

Provides a provider-agnostic interface for streaming chat completions:

- Provider adapters (Gemini) over a shared httpx.AsyncClient
- Error classification and normalization in the router
- Prompt rendering that produces a list of Turn objects

Usage:
    from blueberry.services.llm import LLMRouter, LLMRequest, Turn

    router = LLMRouter(httpx_client)
    req = LLMRequest(model_name="gemini-3-pro-preview", messages=turns, max_tokens=2000)
    async for chunk in router.generate_stream("gemini", req, api_key=key):
        ...

Adapters do no retries, no DB access and never log request/response bodies.
"""

from blueberry.services.llm.adapter import LLMAdapter
from blueberry.services.llm.errors import (
    ERROR_CLASS_TO_MESSAGE,
    LLMError,
    LLMErrorClass,
    classify_provider_error,
    user_facing_message,
)
from blueberry.services.llm.prompt import SYSTEM_PROMPT_TEMPLATE, render_prompt
from blueberry.services.llm.router import LLMRouter
from blueberry.services.llm.types import LLMChunk, LLMRequest, LLMUsage, Turn

__all__ = [
    # Core types
    "Turn",
    "LLMRequest",
    "LLMChunk",
    "LLMUsage",
    # Adapter interface
    "LLMAdapter",
    # Router
    "LLMRouter",
    # Errors
    "ERROR_CLASS_TO_MESSAGE",
    "LLMError",
    "LLMErrorClass",
    "classify_provider_error",
    "user_facing_message",
    # Prompt rendering
    "render_prompt",
    "SYSTEM_PROMPT_TEMPLATE",
]
