"""Highlight, Conversation and Message Pydantic schemas.

A Tombstone is the full pre-deletion snapshot of a highlight and has the
same shape as HighlightOut, so it is used for both delete responses and
restore requests.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import Field

from blueberry.schemas.common import CamelModel

# Valid message roles - must match DB constraint
MESSAGE_ROLES = Literal["user", "assistant"]


# =============================================================================
# Output Schemas
# =============================================================================


class MessageOut(CamelModel):
    """Response schema for a message. Messages are append-only."""

    id: UUID
    role: MESSAGE_ROLES
    content: str
    created_at: datetime


class ConversationOut(CamelModel):
    """Response schema for the conversation owned by a highlight."""

    id: UUID
    created_at: datetime
    messages: list[MessageOut] = Field(default_factory=list)


class HighlightOut(CamelModel):
    """Response schema for a highlight.

    conversation is None until the first message of the highlight is sent.
    """

    id: UUID
    document_id: UUID
    page_number: int
    anchor: str
    selected_text: str
    created_at: datetime
    conversation: ConversationOut | None = None


Tombstone = HighlightOut


# =============================================================================
# Request Schemas
# =============================================================================


class CreateHighlightRequest(CamelModel):
    """Request schema for creating a highlight.

    All fields are required. The anchor is an opaque JSON string.
    """

    document_id: UUID
    page_number: int = Field(..., ge=1)
    anchor: str = Field(..., min_length=1)
    selected_text: str = Field(..., min_length=1)


class RestoreHighlightRequest(CamelModel):
    """Request schema for restoring a deleted highlight from its snapshot."""

    highlight: Tombstone
