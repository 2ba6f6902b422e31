"""Document API routes.

Routes are transport-only: each calls exactly one service function.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Response, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from blueberry.api.deps import get_db
from blueberry.responses import success_response
from blueberry.schemas.documents import UpdateDocumentRequest
from blueberry.services import documents as documents_service
from blueberry.services import highlights as highlights_service

router = APIRouter(prefix="/documents")


@router.get("")
def list_documents(db: Annotated[Session, Depends(get_db)]) -> dict:
    """List uploaded documents, newest first."""
    result = documents_service.list_documents(db)
    return success_response(
        {"documents": [d.model_dump(mode="json", by_alias=True) for d in result]}
    )


@router.post("", status_code=201)
def upload_document(
    file: Annotated[UploadFile, File()],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Upload a PDF.

    Errors:
        E_INVALID_REQUEST (400): No file or empty file.
        E_INVALID_FILE_TYPE (400): Not a PDF.
        E_FILE_TOO_LARGE (400): Larger than MAX_PDF_BYTES.
    """
    result = documents_service.upload_document(
        db,
        filename=file.filename,
        content_type=file.content_type,
        content=file.file.read(),
    )
    return success_response(result.model_dump(mode="json", by_alias=True))


@router.get("/{document_id}")
def get_document(document_id: UUID, db: Annotated[Session, Depends(get_db)]) -> dict:
    result = documents_service.get_document(db, document_id)
    return success_response(result.model_dump(mode="json", by_alias=True))


@router.patch("/{document_id}")
def update_document(
    document_id: UUID,
    request: UpdateDocumentRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Rename a document."""
    result = documents_service.update_document(db, document_id, request)
    return success_response(result.model_dump(mode="json", by_alias=True))


@router.delete("/{document_id}", status_code=204)
def delete_document(document_id: UUID, db: Annotated[Session, Depends(get_db)]) -> Response:
    """Delete a document, its file, and all of its highlights and conversations."""
    documents_service.delete_document(db, document_id)
    return Response(status_code=204)


@router.get("/{document_id}/file")
def get_document_file(document_id: UUID, db: Annotated[Session, Depends(get_db)]) -> FileResponse:
    """Serve the stored PDF inline.

    Errors:
        E_DOCUMENT_NOT_FOUND (404): Unknown document.
        E_FILE_NOT_FOUND (404): The stored file is missing.
    """
    path = documents_service.get_document_file_path(db, document_id)
    return FileResponse(
        path,
        media_type="application/pdf",
        filename=path.name,
        content_disposition_type="inline",
    )


@router.get("/{document_id}/highlights")
def list_highlights(document_id: UUID, db: Annotated[Session, Depends(get_db)]) -> dict:
    """List a document's highlights with nested conversations and messages.

    Highlights are ordered by createdAt ASC, messages by createdAt ASC.
    """
    result = highlights_service.list_highlights_for_document(db, document_id)
    return success_response(
        {"highlights": [h.model_dump(mode="json", by_alias=True) for h in result]}
    )
