"""Highlight API routes.

Routes are transport-only: each calls exactly one service function.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from blueberry.api.deps import get_db
from blueberry.responses import success_response
from blueberry.schemas.highlights import CreateHighlightRequest, RestoreHighlightRequest
from blueberry.services import highlights as highlights_service

router = APIRouter(prefix="/highlights")


@router.post("", status_code=201)
def create_highlight(
    request: CreateHighlightRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Create a highlight. The returned highlight has conversation null.

    Errors:
        E_INVALID_REQUEST (400): Missing or blank fields.
        E_DOCUMENT_NOT_FOUND (404): Unknown document.
    """
    result = highlights_service.create_highlight(db, request)
    return success_response(result.model_dump(mode="json", by_alias=True))


@router.put("/restore", status_code=201)
def restore_highlight(
    request: RestoreHighlightRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Restore a deleted highlight from its snapshot with identical ids and timestamps.

    Errors:
        E_DOCUMENT_NOT_FOUND (404): The owning document was deleted.
        E_HIGHLIGHT_CONFLICT (409): The highlight or one of its children already exists.
    """
    result = highlights_service.restore_highlight(db, request.highlight)
    return success_response(result.model_dump(mode="json", by_alias=True))


@router.delete("/{highlight_id}")
def delete_highlight(highlight_id: UUID, db: Annotated[Session, Depends(get_db)]) -> dict:
    """Delete a highlight and return the snapshot needed to undo it.

    Errors:
        E_HIGHLIGHT_NOT_FOUND (404): Unknown highlight.
    """
    result = highlights_service.delete_highlight(db, highlight_id)
    return success_response({"deleted": result.model_dump(mode="json", by_alias=True)})
