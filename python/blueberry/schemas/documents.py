"""Document Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from blueberry.schemas.common import CamelModel

# Content types accepted for upload
PDF_CONTENT_TYPES = ("application/pdf", "application/x-pdf")


class DocumentOut(CamelModel):
    """Response schema for an uploaded document."""

    id: UUID
    title: str | None = None
    filename: str
    filepath: str
    uploaded_at: datetime


class UpdateDocumentRequest(CamelModel):
    """Request schema for renaming a document.

    An empty or whitespace-only title clears it back to the filename.
    """

    title: str | None = Field(None, max_length=500)
