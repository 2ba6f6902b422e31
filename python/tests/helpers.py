"""Test doubles shared across test modules.

Provides:
- ScriptedAdapter: LLM adapter that replays fixed deltas or raises an error
- InMemoryHighlightStore: HighlightStore kept in a dict, with call counts
- ScriptedTransport: ChatTransport that replays fixed frames
- Model builders for client-side tests
"""

import json
from collections.abc import AsyncIterator
from datetime import UTC, datetime
from uuid import UUID, uuid4

import httpx

from blueberry.client.errors import ConflictError, NotFoundError, ReaderError
from blueberry.client.frames import Delta, Done, Frame
from blueberry.client.models import (
    Conversation,
    Highlight,
    HighlightCandidate,
    Message,
    Tombstone,
)
from blueberry.services.llm.adapter import LLMAdapter
from blueberry.services.llm.errors import LLMError
from blueberry.services.llm.types import LLMChunk, LLMRequest, LLMUsage

# =============================================================================
# Server side
# =============================================================================

GEMINI_STREAM_URL = (
    "https://generativelanguage.googleapis.com/v1beta/models/test-model:streamGenerateContent"
)


def sse(*events: dict) -> str:
    """Render Gemini SSE events."""
    return "".join(f"data: {json.dumps(event)}\r\n\r\n" for event in events)


def text_event(text: str, finish_reason: str | None = None, usage: dict | None = None) -> dict:
    candidate: dict = {"content": {"role": "model", "parts": [{"text": text}]}}
    if finish_reason:
        candidate["finishReason"] = finish_reason
    event: dict = {"candidates": [candidate]}
    if usage:
        event["usageMetadata"] = usage
    return event


SUCCESS_STREAM = sse(
    text_event("Hel"),
    text_event("lo"),
    text_event(
        "!",
        finish_reason="STOP",
        usage={"promptTokenCount": 12, "candidatesTokenCount": 3, "totalTokenCount": 15},
    ),
)


class ScriptedAdapter(LLMAdapter):
    """Adapter that streams `deltas` then finishes, or raises `error` midway."""

    def __init__(
        self,
        deltas: list[str] | None = None,
        error: LLMError | None = None,
        fail_after: int = 0,
    ):
        super().__init__(httpx.AsyncClient())
        self.deltas = deltas or []
        self.error = error
        self.fail_after = fail_after
        self.requests: list[LLMRequest] = []

    async def generate_stream(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: int,
    ) -> AsyncIterator[LLMChunk]:
        self.requests.append(req)
        for index, text in enumerate(self.deltas):
            if self.error is not None and index == self.fail_after:
                raise self.error
            yield LLMChunk(delta_text=text, done=False)
        if self.error is not None:
            raise self.error
        yield LLMChunk(delta_text="", done=True, usage=LLMUsage(10, len(self.deltas), None))


# =============================================================================
# Client side
# =============================================================================


def make_message(role: str = "user", content: str = "Why?") -> Message:
    return Message(id=uuid4(), role=role, content=content, created_at=datetime.now(UTC))


def make_highlight(
    selected_text: str = "A",
    page_number: int = 1,
    document_id: UUID | None = None,
    highlight_id: UUID | None = None,
    messages: list[Message] | None = None,
) -> Highlight:
    conversation = None
    if messages is not None:
        conversation = Conversation(
            id=uuid4(), created_at=datetime.now(UTC), messages=tuple(messages)
        )
    return Highlight(
        id=highlight_id or uuid4(),
        document_id=document_id or uuid4(),
        page_number=page_number,
        anchor='{"page": 1, "startX": 0, "startY": 0, "endX": 10, "endY": 10}',
        selected_text=selected_text,
        created_at=datetime.now(UTC),
        conversation=conversation,
    )


class InMemoryHighlightStore:
    """HighlightStore over a dict. Set `fail_next` to make the next call raise."""

    def __init__(self, highlights: list[Highlight] | None = None):
        self.highlights: dict[UUID, Highlight] = {h.id: h for h in highlights or []}
        self.created: list[HighlightCandidate] = []
        self.fail_next: ReaderError | None = None
        self.list_calls = 0

    def _maybe_fail(self) -> None:
        if self.fail_next is not None:
            error, self.fail_next = self.fail_next, None
            raise error

    async def list_by_document(self, document_id: UUID) -> list[Highlight]:
        self.list_calls += 1
        self._maybe_fail()
        return [h for h in self.highlights.values() if h.document_id == document_id]

    async def create(self, candidate: HighlightCandidate) -> Highlight:
        self._maybe_fail()
        self.created.append(candidate)
        highlight = Highlight(
            id=uuid4(),
            document_id=candidate.document_id,
            page_number=candidate.page_number,
            anchor=candidate.anchor.to_json(),
            selected_text=candidate.selected_text,
            created_at=datetime.now(UTC),
        )
        self.highlights[highlight.id] = highlight
        return highlight

    async def delete(self, highlight_id: UUID) -> Tombstone:
        self._maybe_fail()
        if highlight_id not in self.highlights:
            raise NotFoundError("Highlight not found", "E_HIGHLIGHT_NOT_FOUND")
        return self.highlights.pop(highlight_id)

    async def restore(self, tombstone: Tombstone) -> Highlight:
        self._maybe_fail()
        if tombstone.id in self.highlights:
            raise ConflictError("Highlight already exists", "E_HIGHLIGHT_CONFLICT")
        self.highlights[tombstone.id] = tombstone
        return tombstone

    def add_conversation(self, highlight_id: UUID, conversation_id: UUID, messages) -> None:
        """Attach a conversation the way the server would after a turn."""
        highlight = self.highlights[highlight_id]
        conversation = Conversation(
            id=conversation_id, created_at=datetime.now(UTC), messages=tuple(messages)
        )
        self.highlights[highlight_id] = highlight.model_copy(update={"conversation": conversation})


class ScriptedTransport:
    """ChatTransport that replays `frames`, or raises `error` before streaming."""

    def __init__(self, frames: list[Frame] | None = None, conversation_id: UUID | None = None):
        self.conversation_id = conversation_id or uuid4()
        self.frames = frames
        self.unavailable: ReaderError | None = None
        self.error: ReaderError | None = None
        self.requests: list[tuple[UUID, str, UUID | None]] = []
        self.on_request = None

    async def ensure_available(self) -> None:
        if self.unavailable is not None:
            raise self.unavailable

    async def stream_turn(
        self, highlight_id: UUID, message: str, conversation_id: UUID | None
    ) -> AsyncIterator[Frame]:
        self.requests.append((highlight_id, message, conversation_id))
        if self.on_request is not None:
            self.on_request(highlight_id, message)
        if self.error is not None:
            raise self.error
        frames = self.frames
        if frames is None:
            frames = [Delta("Hel"), Delta("lo"), Done(str(self.conversation_id))]
        for frame in frames:
            yield frame
