"""Gemini LLM adapter.

Streaming endpoint:
    POST https://generativelanguage.googleapis.com/v1beta/models/{model}:streamGenerateContent?alt=sse

Auth:
- Header: x-goog-api-key: <key>
- NEVER put the key in a query param

Turn conversion:
- System turn -> systemInstruction.parts[0].text
- "assistant" role -> "model" role
- Each turn's content -> parts: [{"text": "..."}]

Each SSE event carries ``data: {"candidates":[{"content":{"parts":[...]}}]}``.
The event whose candidate has a finishReason ends the stream; MAX_TOKENS is
a normal end because every request is capped by maxOutputTokens.
"""

import json
from collections.abc import AsyncIterator

import httpx

from blueberry.logging import get_logger
from blueberry.services.llm.adapter import LLMAdapter
from blueberry.services.llm.errors import LLMError, LLMErrorClass
from blueberry.services.llm.types import LLMChunk, LLMRequest, LLMUsage, Turn

logger = get_logger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

# Finish reasons that end a stream with a usable answer
COMPLETE_FINISH_REASONS = frozenset({"STOP", "MAX_TOKENS"})


class GeminiAdapter(LLMAdapter):
    """Google Gemini API adapter."""

    def __init__(self, client: httpx.AsyncClient, base_url: str = GEMINI_BASE_URL):
        super().__init__(client)
        self._base_url = base_url

    async def generate_stream(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: int,
    ) -> AsyncIterator[LLMChunk]:
        """Streaming content generation using Server-Sent Events."""
        url = f"{self._base_url}/{req.model_name}:streamGenerateContent?alt=sse"

        async with self._client.stream(
            "POST",
            url,
            headers=self._build_headers(api_key),
            json=self._build_request_body(req),
            timeout=httpx.Timeout(timeout_s, connect=10.0),
        ) as response:
            if response.is_error:
                # Read the body so the router can classify the error
                await response.aread()
            response.raise_for_status()

            usage: LLMUsage | None = None

            async for line in response.aiter_lines():
                if not line.startswith("data: "):
                    continue

                try:
                    data = json.loads(line[6:])
                except json.JSONDecodeError:
                    continue

                usage_metadata = data.get("usageMetadata")
                if usage_metadata:
                    usage = LLMUsage(
                        prompt_tokens=usage_metadata.get("promptTokenCount"),
                        completion_tokens=usage_metadata.get("candidatesTokenCount"),
                        total_tokens=usage_metadata.get("totalTokenCount"),
                    )

                candidates = data.get("candidates") or []
                if not candidates:
                    continue

                candidate = candidates[0]
                parts = candidate.get("content", {}).get("parts", [])
                delta_text = "".join(part.get("text", "") for part in parts)
                if delta_text:
                    yield LLMChunk(delta_text=delta_text, done=False)

                finish_reason = candidate.get("finishReason")
                if finish_reason is None:
                    continue
                if finish_reason not in COMPLETE_FINISH_REASONS:
                    logger.warning("gemini_stream_blocked", finish_reason=finish_reason)
                    raise LLMError(
                        LLMErrorClass.PROVIDER_DOWN,
                        f"Gemini stream finished with {finish_reason}",
                        provider="gemini",
                    )
                yield LLMChunk(delta_text="", done=True, usage=usage)
                return

            raise LLMError(
                LLMErrorClass.PROVIDER_DOWN,
                "Gemini stream ended without a finish reason",
                provider="gemini",
            )

    def _build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }

    def _build_request_body(self, req: LLMRequest) -> dict:
        """Build the request body, lifting the system turn into systemInstruction."""
        system_prompt = None
        contents = []

        for turn in req.messages:
            if turn.role == "system":
                system_prompt = turn.content
            else:
                contents.append(self._turn_to_content(turn))

        body: dict = {
            "contents": contents,
            "generationConfig": {"maxOutputTokens": req.max_tokens},
        }

        if system_prompt:
            body["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        if req.temperature is not None:
            body["generationConfig"]["temperature"] = req.temperature

        return body

    def _turn_to_content(self, turn: Turn) -> dict:
        role = "model" if turn.role == "assistant" else turn.role
        return {"role": role, "parts": [{"text": turn.content}]}
