"""Highlight service layer.

Implements the server side of the highlight store:
- list highlights of a document with nested conversation and messages
- create a highlight (conversation is created lazily by the chat stream)
- delete a highlight, returning the full pre-deletion snapshot (Tombstone)
- restore a highlight from its snapshot with identical ids and timestamps

Identity (same passage vs. new one) is resolved by the client before
create; the store does not deduplicate.

Service functions correspond 1:1 with route handlers.
Routes are transport-only and call exactly one service function.
"""

from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from blueberry.db.models import Conversation, Highlight, Message
from blueberry.db.session import transaction
from blueberry.errors import ApiErrorCode, ConflictError, InvalidRequestError, NotFoundError
from blueberry.logging import get_logger
from blueberry.schemas.highlights import CreateHighlightRequest, HighlightOut, Tombstone
from blueberry.services.documents import get_document_or_404

logger = get_logger(__name__)


# =============================================================================
# Shared Helpers
# =============================================================================


def _with_conversation():
    return selectinload(Highlight.conversation).selectinload(Conversation.messages)


def get_highlight_or_404(db: Session, highlight_id: UUID) -> Highlight:
    """Load a highlight with its conversation and messages.

    Raises:
        NotFoundError(E_HIGHLIGHT_NOT_FOUND): If the highlight doesn't exist.
    """
    highlight = db.scalars(
        select(Highlight).where(Highlight.id == highlight_id).options(_with_conversation())
    ).one_or_none()
    if highlight is None:
        raise NotFoundError(ApiErrorCode.E_HIGHLIGHT_NOT_FOUND, "Highlight not found")
    return highlight


def _highlight_to_out(highlight: Highlight) -> HighlightOut:
    return HighlightOut.model_validate(highlight)


# =============================================================================
# Service Functions
# =============================================================================


def list_highlights_for_document(db: Session, document_id: UUID) -> list[HighlightOut]:
    """List all highlights of a document.

    Highlights are ordered by created_at ASC; messages of each conversation
    by created_at ASC with seq breaking ties.

    Raises:
        NotFoundError(E_DOCUMENT_NOT_FOUND): Unknown document.
    """
    get_document_or_404(db, document_id)

    highlights = db.scalars(
        select(Highlight)
        .where(Highlight.document_id == document_id)
        .options(_with_conversation())
        .order_by(Highlight.created_at, Highlight.id)
    ).all()
    return [_highlight_to_out(h) for h in highlights]


def create_highlight(db: Session, req: CreateHighlightRequest) -> HighlightOut:
    """Create a highlight. The result has no conversation.

    Raises:
        InvalidRequestError: Blank selected text or anchor.
        NotFoundError(E_DOCUMENT_NOT_FOUND): Unknown document.
    """
    if not req.selected_text.strip():
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "selectedText is required")
    if not req.anchor.strip():
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "anchor is required")

    get_document_or_404(db, req.document_id)

    highlight = Highlight(
        document_id=req.document_id,
        page_number=req.page_number,
        selected_text=req.selected_text,
        anchor=req.anchor,
    )
    db.add(highlight)
    db.commit()

    logger.info(
        "highlight_created",
        highlight_id=str(highlight.id),
        document_id=str(req.document_id),
        page_number=req.page_number,
    )
    return HighlightOut(
        id=highlight.id,
        document_id=highlight.document_id,
        page_number=highlight.page_number,
        anchor=highlight.anchor,
        selected_text=highlight.selected_text,
        created_at=highlight.created_at,
        conversation=None,
    )


def delete_highlight(db: Session, highlight_id: UUID) -> Tombstone:
    """Delete a highlight and return its full pre-deletion snapshot.

    The conversation and messages are removed by ON DELETE CASCADE.

    Raises:
        NotFoundError(E_HIGHLIGHT_NOT_FOUND): Unknown highlight.
    """
    highlight = get_highlight_or_404(db, highlight_id)
    snapshot = _highlight_to_out(highlight)

    db.execute(delete(Highlight).where(Highlight.id == highlight_id))
    db.commit()
    db.expunge_all()

    logger.info(
        "highlight_deleted",
        highlight_id=str(highlight_id),
        message_count=len(snapshot.conversation.messages) if snapshot.conversation else 0,
    )
    return snapshot


def _ids_in_use(db: Session, tombstone: Tombstone) -> bool:
    if db.get(Highlight, tombstone.id) is not None:
        return True
    if tombstone.conversation is None:
        return False
    if db.get(Conversation, tombstone.conversation.id) is not None:
        return True
    message_ids = [m.id for m in tombstone.conversation.messages]
    if not message_ids:
        return False
    existing = db.scalars(select(Message.id).where(Message.id.in_(message_ids)).limit(1)).first()
    return existing is not None


def restore_highlight(db: Session, tombstone: Tombstone) -> HighlightOut:
    """Recreate a deleted highlight, conversation and messages from a snapshot.

    Ids and timestamps are restored exactly. Message sequence numbers are
    reassigned from the snapshot order.

    Raises:
        NotFoundError(E_DOCUMENT_NOT_FOUND): The owning document no longer exists.
        ConflictError(E_HIGHLIGHT_CONFLICT): Any snapshot id already exists.
    """
    get_document_or_404(db, tombstone.document_id)

    if _ids_in_use(db, tombstone):
        raise ConflictError(ApiErrorCode.E_HIGHLIGHT_CONFLICT, "Highlight already exists")

    highlight = Highlight(
        id=tombstone.id,
        document_id=tombstone.document_id,
        page_number=tombstone.page_number,
        selected_text=tombstone.selected_text,
        anchor=tombstone.anchor,
        created_at=tombstone.created_at,
    )

    if tombstone.conversation is not None:
        snapshot_messages = tombstone.conversation.messages
        highlight.conversation = Conversation(
            id=tombstone.conversation.id,
            created_at=tombstone.conversation.created_at,
            next_seq=len(snapshot_messages) + 1,
            messages=[
                Message(
                    id=m.id,
                    seq=seq,
                    role=m.role,
                    content=m.content,
                    created_at=m.created_at,
                )
                for seq, m in enumerate(snapshot_messages, start=1)
            ],
        )

    try:
        with transaction(db):
            db.add(highlight)
    except IntegrityError as e:
        raise ConflictError(ApiErrorCode.E_HIGHLIGHT_CONFLICT, "Highlight already exists") from e

    logger.info("highlight_restored", highlight_id=str(tombstone.id))
    return _highlight_to_out(get_highlight_or_404(db, tombstone.id))
