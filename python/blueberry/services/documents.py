"""Document service layer.

Uploaded PDFs are written to UPLOADS_DIR as ``{timestamp_ms}-{name}`` and a
Document row records the original filename and the stored path. Deleting a
document removes its file and cascades to highlights, conversations and
messages.

Service functions correspond 1:1 with route handlers.
"""

import re
import time
from pathlib import Path
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from blueberry.config import get_settings
from blueberry.db.models import Document
from blueberry.db.session import transaction
from blueberry.errors import ApiError, ApiErrorCode, InvalidRequestError, NotFoundError
from blueberry.logging import get_logger
from blueberry.schemas.documents import PDF_CONTENT_TYPES, DocumentOut, UpdateDocumentRequest

logger = get_logger(__name__)

PDF_MAGIC = b"%PDF-"

# Characters kept from client-supplied filenames when building the stored name
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._ -]")


def _document_to_out(document: Document) -> DocumentOut:
    return DocumentOut.model_validate(document)


def get_document_or_404(db: Session, document_id: UUID) -> Document:
    """Load a document by id.

    Raises:
        NotFoundError(E_DOCUMENT_NOT_FOUND): If the document doesn't exist.
    """
    document = db.get(Document, document_id)
    if document is None:
        raise NotFoundError(ApiErrorCode.E_DOCUMENT_NOT_FOUND, "Document not found")
    return document


def _validate_upload(filename: str | None, content_type: str | None, content: bytes) -> str:
    """Validate an uploaded PDF and return its cleaned display filename.

    Browsers do not always set the content type, so either a PDF content
    type or a .pdf extension is accepted. The content must start with the
    PDF magic bytes.
    """
    name = Path(filename or "").name.strip()
    if not name:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "No file provided")

    looks_like_pdf = name.lower().endswith(".pdf") or content_type in PDF_CONTENT_TYPES
    if not looks_like_pdf:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_FILE_TYPE, "File must be a PDF")

    if not content:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "File is empty")

    max_bytes = get_settings().max_pdf_bytes
    if len(content) > max_bytes:
        raise InvalidRequestError(
            ApiErrorCode.E_FILE_TOO_LARGE, f"File exceeds maximum size of {max_bytes} bytes"
        )

    if not content.startswith(PDF_MAGIC):
        raise InvalidRequestError(ApiErrorCode.E_INVALID_FILE_TYPE, "File must be a PDF")

    return name


def upload_document(
    db: Session,
    filename: str | None,
    content_type: str | None,
    content: bytes,
) -> DocumentOut:
    """Store an uploaded PDF and create its Document row.

    Raises:
        InvalidRequestError: Missing, empty, oversized or non-PDF upload.
        ApiError(E_STORAGE_ERROR): The file could not be written.
    """
    name = _validate_upload(filename, content_type, content)

    uploads_dir = Path(get_settings().uploads_dir)
    stored_name = f"{int(time.time() * 1000)}-{_UNSAFE_FILENAME_CHARS.sub('_', name)}"
    path = uploads_dir / stored_name

    try:
        uploads_dir.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    except OSError as e:
        logger.error("document_write_failed", stored_name=stored_name, error=str(e))
        raise ApiError(ApiErrorCode.E_STORAGE_ERROR, "Failed to store file") from e

    document = Document(filename=name, filepath=str(path))
    try:
        with transaction(db):
            db.add(document)
    except Exception:
        path.unlink(missing_ok=True)
        raise

    logger.info("document_uploaded", document_id=str(document.id), size_bytes=len(content))
    return _document_to_out(document)


def list_documents(db: Session) -> list[DocumentOut]:
    """List all documents, newest first."""
    documents = db.scalars(
        select(Document).order_by(Document.uploaded_at.desc(), Document.id)
    ).all()
    return [_document_to_out(d) for d in documents]


def get_document(db: Session, document_id: UUID) -> DocumentOut:
    return _document_to_out(get_document_or_404(db, document_id))


def update_document(db: Session, document_id: UUID, req: UpdateDocumentRequest) -> DocumentOut:
    """Rename a document. A blank title clears it."""
    document = get_document_or_404(db, document_id)
    title = (req.title or "").strip()
    document.title = title or None
    db.commit()
    return _document_to_out(document)


def delete_document(db: Session, document_id: UUID) -> None:
    """Delete a document, its stored file and everything attached to it.

    A missing file on disk does not block deletion of the row.
    """
    document = get_document_or_404(db, document_id)
    path = Path(document.filepath)

    db.execute(delete(Document).where(Document.id == document_id))
    db.commit()

    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("document_file_unlink_failed", document_id=str(document_id), error=str(e))

    logger.info("document_deleted", document_id=str(document_id))


def get_document_file_path(db: Session, document_id: UUID) -> Path:
    """Resolve the stored PDF for a document.

    Only files inside UPLOADS_DIR are served.

    Raises:
        NotFoundError(E_DOCUMENT_NOT_FOUND): Unknown document.
        NotFoundError(E_FILE_NOT_FOUND): File missing or outside the uploads directory.
    """
    document = get_document_or_404(db, document_id)

    uploads_dir = Path(get_settings().uploads_dir).resolve()
    path = Path(document.filepath).resolve()
    if not path.is_relative_to(uploads_dir) or not path.is_file():
        raise NotFoundError(ApiErrorCode.E_FILE_NOT_FOUND, "File not found")
    return path
