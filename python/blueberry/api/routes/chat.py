"""Chat API routes.

POST /chat streams one turn as text/event-stream. Validation, not-found and
configuration failures are raised before the stream starts and rendered as
ordinary JSON error responses.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session, sessionmaker

from blueberry.api.deps import get_db, get_llm_router, get_session_factory
from blueberry.responses import success_response
from blueberry.schemas.chat import ChatRequest
from blueberry.services import chat_stream
from blueberry.services.llm import LLMRouter

router = APIRouter(prefix="/chat")

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "X-Accel-Buffering": "no",
}


@router.get("/status")
def chat_status() -> dict:
    """Report whether chat is available and which model answers."""
    result = chat_stream.get_chat_status()
    return success_response(result.model_dump(mode="json", by_alias=True))


@router.post("")
def send_chat_message(
    body: ChatRequest,
    db: Annotated[Session, Depends(get_db)],
    session_factory: Annotated[sessionmaker[Session], Depends(get_session_factory)],
    llm_router: Annotated[LLMRouter, Depends(get_llm_router)],
) -> StreamingResponse:
    """Send a message about a highlight and stream the reply.

    Frames:
    - {"text": "..."}: incremental content
    - {"done": true, "conversationId": "..."}: turn completed
    - {"error": "..."}: turn failed, no assistant message saved

    Errors (JSON, before streaming):
        E_INVALID_REQUEST (400): Missing highlightId or message.
        E_CONVERSATION_MISMATCH (400): conversationId belongs to another highlight.
        E_HIGHLIGHT_NOT_FOUND / E_CONVERSATION_NOT_FOUND (404)
        E_LLM_UNAVAILABLE (503): No provider key configured.
    """
    frames = chat_stream.open_chat_stream(db, session_factory, body, llm_router)
    return StreamingResponse(
        frames,
        media_type="text/event-stream; charset=utf-8",
        headers=SSE_HEADERS,
    )
