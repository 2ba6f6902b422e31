"""Chat Pydantic schemas."""

from uuid import UUID

from pydantic import Field

from blueberry.schemas.common import CamelModel

# Maximum user message length in characters
MAX_MESSAGE_LENGTH = 20000


class ChatRequest(CamelModel):
    """Request schema for one chat turn.

    conversation_id is None for the first turn of a highlight; the server
    resolves or creates the highlight's conversation.
    """

    highlight_id: UUID
    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)
    conversation_id: UUID | None = None


class ChatStatusOut(CamelModel):
    """Response schema for the chat availability check."""

    available: bool
    model: str
