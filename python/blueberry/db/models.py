"""SQLAlchemy ORM models for Blueberry.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Column types are portable so the same schema runs on SQLite (default,
single-user) and PostgreSQL. Identifiers and timestamps are assigned on the
Python side so a deleted highlight can be restored with identical values.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy import Uuid as SA_Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Document(Base):
    """Document model - an uploaded PDF.

    Immutable after upload except for the display title.
    """

    __tablename__ = "documents"

    id: Mapped[UUID] = mapped_column(SA_Uuid(), primary_key=True, default=uuid4)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    filename: Mapped[str] = mapped_column(Text, nullable=False)
    filepath: Mapped[str] = mapped_column(Text, nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    # Relationships
    highlights: Mapped[list["Highlight"]] = relationship(
        "Highlight",
        back_populates="document",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Highlight(Base):
    """Highlight model - a user-marked passage on one page of a document.

    The anchor is stored as an opaque JSON string produced by the client.
    Identity (same passage vs. new one) is decided on the client by
    (selected_text, page_number); the table does not enforce it.
    """

    __tablename__ = "highlights"

    id: Mapped[UUID] = mapped_column(SA_Uuid(), primary_key=True, default=uuid4)
    document_id: Mapped[UUID] = mapped_column(
        SA_Uuid(),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    page_number: Mapped[int] = mapped_column(Integer, nullable=False)
    selected_text: Mapped[str] = mapped_column(Text, nullable=False)
    anchor: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (CheckConstraint("page_number >= 1", name="ck_highlights_page_positive"),)

    # Relationships
    document: Mapped["Document"] = relationship("Document", back_populates="highlights")
    conversation: Mapped["Conversation | None"] = relationship(
        "Conversation",
        uselist=False,
        back_populates="highlight",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Conversation(Base):
    """Conversation model - the message thread of exactly one highlight.

    Created lazily when the first message of a highlight is sent.
    """

    __tablename__ = "conversations"

    id: Mapped[UUID] = mapped_column(SA_Uuid(), primary_key=True, default=uuid4)
    highlight_id: Mapped[UUID] = mapped_column(
        SA_Uuid(),
        ForeignKey("highlights.id", ondelete="CASCADE"),
        nullable=False,
    )
    next_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("highlight_id", name="uix_conversations_highlight"),
        CheckConstraint("next_seq >= 1", name="ck_conversations_next_seq_positive"),
    )

    # Relationships
    highlight: Mapped["Highlight"] = relationship("Highlight", back_populates="conversation")
    messages: Mapped[list["Message"]] = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.seq",
    )


class Message(Base):
    """Message model - a single message in a conversation. Append-only."""

    __tablename__ = "messages"

    id: Mapped[UUID] = mapped_column(SA_Uuid(), primary_key=True, default=uuid4)
    conversation_id: Mapped[UUID] = mapped_column(
        SA_Uuid(),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    seq: Mapped[int] = mapped_column(Integer, nullable=False)
    role: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("seq >= 1", name="ck_messages_seq_positive"),
        CheckConstraint("role IN ('user', 'assistant')", name="ck_messages_role"),
        UniqueConstraint("conversation_id", "seq", name="uix_messages_conversation_seq"),
    )

    # Relationships
    conversation: Mapped["Conversation"] = relationship("Conversation", back_populates="messages")
