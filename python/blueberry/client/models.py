"""Wire models used by the client core.

These mirror the API's camelCase JSON. Instances are immutable; the
session replaces its highlight list wholesale instead of patching it.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import ConfigDict, Field

from blueberry.client.geometry import Anchor
from blueberry.schemas.common import CamelModel


class WireModel(CamelModel):
    model_config = ConfigDict(frozen=True)


class Message(WireModel):
    id: UUID
    role: Literal["user", "assistant"]
    content: str
    created_at: datetime


class Conversation(WireModel):
    id: UUID
    created_at: datetime
    messages: tuple[Message, ...] = ()


class Highlight(WireModel):
    """A stored highlight. conversation is None until its first message."""

    id: UUID
    document_id: UUID
    page_number: int
    anchor: str
    selected_text: str
    created_at: datetime
    conversation: Conversation | None = None

    @property
    def messages(self) -> tuple[Message, ...]:
        return self.conversation.messages if self.conversation else ()


# Full pre-deletion snapshot of a highlight, kept for one undo
Tombstone = Highlight


class HighlightCandidate(WireModel):
    """An unpersisted highlight awaiting its first chat message."""

    document_id: UUID
    page_number: int = Field(..., ge=1)
    anchor: Anchor
    selected_text: str

    def to_create_body(self) -> dict:
        return {
            "documentId": str(self.document_id),
            "pageNumber": self.page_number,
            "anchor": self.anchor.to_json(),
            "selectedText": self.selected_text,
        }


class Document(WireModel):
    id: UUID
    title: str | None = None
    filename: str
    filepath: str
    uploaded_at: datetime
