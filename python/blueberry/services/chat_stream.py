"""Chat turn service: one user message in, one streamed assistant reply out.

A turn runs in two phases:

1. Prepare (sync, before the response starts): validate the highlight and
   conversation, resolve or create the highlight's 1:1 conversation, persist
   the user message and render the prompt. Failures here are ordinary JSON
   error responses (400/404/503).
2. Stream (async generator consumed by StreamingResponse): forward provider
   deltas as frames, persist the assistant message once the provider stream
   finished, then emit the terminal frame.

Frames (each ``data: <json>\\n\\n``):
- {"text": "..."}                          repeated, in arrival order
- {"done": true, "conversationId": "..."}  terminal, success
- {"error": "..."}                         terminal, failure

On a provider error no assistant message is persisted.
Sync DB access in the stream phase uses run_in_threadpool.
"""

import json
from collections.abc import AsyncIterator
from dataclasses import dataclass
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from blueberry.config import Settings, get_settings
from blueberry.db.models import Conversation, Message
from blueberry.db.session import transaction
from blueberry.errors import (
    ApiErrorCode,
    InvalidRequestError,
    NotFoundError,
    ServiceUnavailableError,
)
from blueberry.logging import get_logger, set_turn_id
from blueberry.schemas.chat import ChatRequest, ChatStatusOut
from blueberry.services.highlights import get_highlight_or_404
from blueberry.services.llm import (
    LLMError,
    LLMRequest,
    LLMRouter,
    Turn,
    render_prompt,
    user_facing_message,
)
from blueberry.services.redact import safe_kv

logger = get_logger(__name__)

SAVE_FAILED_MESSAGE = "The response could not be saved. Please try again."


def format_frame(payload: dict) -> str:
    """Format one chat stream frame."""
    return f"data: {json.dumps(payload)}\n\n"


@dataclass(frozen=True)
class PreparedTurn:
    """Everything the stream phase needs, detached from the request session."""

    turn_id: str
    highlight_id: UUID
    conversation_id: UUID
    prompt: list[Turn]


# =============================================================================
# Prepare phase
# =============================================================================


def assign_next_message_seq(conversation: Conversation) -> int:
    """Take the next message sequence number of a conversation.

    Must be called inside the transaction that inserts the message.
    """
    seq = conversation.next_seq
    conversation.next_seq = seq + 1
    return seq


def _resolve_conversation(
    db: Session, highlight_id: UUID, conversation_id: UUID | None
) -> Conversation:
    """Return the highlight's conversation, creating it on the first turn.

    Raises:
        NotFoundError(E_CONVERSATION_NOT_FOUND): Unknown conversation id.
        InvalidRequestError(E_CONVERSATION_MISMATCH): Conversation of another highlight.
    """
    if conversation_id is not None:
        conversation = db.get(Conversation, conversation_id)
        if conversation is None:
            raise NotFoundError(ApiErrorCode.E_CONVERSATION_NOT_FOUND, "Conversation not found")
        if conversation.highlight_id != highlight_id:
            raise InvalidRequestError(
                ApiErrorCode.E_CONVERSATION_MISMATCH,
                "Conversation does not belong to this highlight",
            )
        return conversation

    highlight = get_highlight_or_404(db, highlight_id)
    if highlight.conversation is not None:
        return highlight.conversation

    conversation = Conversation(highlight_id=highlight_id, next_seq=1)
    db.add(conversation)
    db.flush()
    return conversation


def prepare_chat_turn(db: Session, req: ChatRequest) -> PreparedTurn:
    """Persist the user message and render the prompt for a turn.

    Raises:
        NotFoundError: Unknown highlight or conversation.
        InvalidRequestError: Blank message or conversation mismatch.
    """
    if not req.message.strip():
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "message is required")

    highlight = get_highlight_or_404(db, req.highlight_id)
    conversation = _resolve_conversation(db, highlight.id, req.conversation_id)

    history = [Turn(role=m.role, content=m.content) for m in conversation.messages]

    db.add(
        Message(
            conversation_id=conversation.id,
            seq=assign_next_message_seq(conversation),
            role="user",
            content=req.message,
        )
    )
    db.commit()

    return PreparedTurn(
        turn_id=str(uuid4()),
        highlight_id=highlight.id,
        conversation_id=conversation.id,
        prompt=render_prompt(highlight.selected_text, req.message, history),
    )


def save_assistant_message(
    session_factory: sessionmaker[Session], conversation_id: UUID, content: str
) -> None:
    """Append the assistant message of a completed turn."""
    db = session_factory()
    try:
        with transaction(db):
            conversation = db.get(Conversation, conversation_id)
            if conversation is None:
                raise NotFoundError(
                    ApiErrorCode.E_CONVERSATION_NOT_FOUND, "Conversation not found"
                )
            db.add(
                Message(
                    conversation_id=conversation_id,
                    seq=assign_next_message_seq(conversation),
                    role="assistant",
                    content=content,
                )
            )
    finally:
        db.close()


# =============================================================================
# Stream phase
# =============================================================================


async def stream_chat_turn(
    session_factory: sessionmaker[Session],
    turn: PreparedTurn,
    llm_router: LLMRouter,
    settings: Settings,
) -> AsyncIterator[str]:
    """Async generator of frames for a prepared turn.

    Yields:
        Frame strings; the last one is always a done or error frame.
    """
    set_turn_id(turn.turn_id)
    log_fields = {
        "highlight_id": str(turn.highlight_id),
        "conversation_id": str(turn.conversation_id),
    }

    llm_request = LLMRequest(
        model_name=settings.llm_model,
        messages=turn.prompt,
        max_tokens=settings.llm_max_output_tokens,
    )

    parts: list[str] = []
    try:
        async for chunk in llm_router.generate_stream(
            settings.llm_provider,
            llm_request,
            settings.llm_api_key or "",
            timeout_s=settings.llm_timeout_s,
        ):
            if chunk.delta_text:
                parts.append(chunk.delta_text)
                yield format_frame({"text": chunk.delta_text})
    except LLMError as e:
        logger.warning(
            "chat_turn_failed",
            **safe_kv(
                **log_fields,
                error_class=e.error_class.value,
                partial_chars=sum(map(len, parts)),
            ),
        )
        yield format_frame({"error": user_facing_message(e)})
        return

    content = "".join(parts)
    try:
        await run_in_threadpool(
            save_assistant_message, session_factory, turn.conversation_id, content
        )
    except (SQLAlchemyError, NotFoundError) as e:
        logger.error("chat_turn_save_failed", **safe_kv(**log_fields, error=type(e).__name__))
        yield format_frame({"error": SAVE_FAILED_MESSAGE})
        return

    logger.info("chat_turn_completed", **safe_kv(**log_fields, response_chars=len(content)))
    yield format_frame({"done": True, "conversationId": str(turn.conversation_id)})


def open_chat_stream(
    db: Session,
    session_factory: sessionmaker[Session],
    req: ChatRequest,
    llm_router: LLMRouter,
) -> AsyncIterator[str]:
    """Validate and prepare a turn, then return its frame stream.

    Availability is checked before any store mutation.

    Raises:
        ServiceUnavailableError(E_LLM_UNAVAILABLE): No provider key configured.
        NotFoundError / InvalidRequestError: See prepare_chat_turn.
    """
    settings = get_settings()
    if not settings.llm_configured:
        raise ServiceUnavailableError()

    turn = prepare_chat_turn(db, req)
    logger.info(
        "chat_turn_started",
        **safe_kv(
            turn_id=turn.turn_id,
            highlight_id=str(turn.highlight_id),
            conversation_id=str(turn.conversation_id),
            message_chars=len(req.message),
            history_turns=len(turn.prompt) - 2,
        ),
    )
    return stream_chat_turn(session_factory, turn, llm_router, settings)


def get_chat_status() -> ChatStatusOut:
    """Report whether chat is configured and which model it uses."""
    settings = get_settings()
    return ChatStatusOut(available=settings.llm_configured, model=settings.llm_model)
