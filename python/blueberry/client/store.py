"""Highlight store and chat transport contracts, with HTTP implementations.

The client core depends only on the HighlightStore and ChatTransport
protocols; HttpHighlightStore and HttpChatTransport implement them against
the Blueberry API using a caller-owned httpx.AsyncClient whose base_url
points at the server.

    async with httpx.AsyncClient(base_url="http://localhost:8000") as http:
        store = HttpHighlightStore(http)
        highlights = await store.list_by_document(document_id)
"""

from collections.abc import AsyncIterator
from typing import Any, Protocol
from uuid import UUID

import httpx

from blueberry.client.errors import (
    ConfigurationError,
    TransportError,
    error_from_response,
)
from blueberry.client.frames import Frame, decode_frames
from blueberry.client.models import Document, Highlight, HighlightCandidate, Tombstone
from blueberry.logging import get_logger

logger = get_logger(__name__)


class HighlightStore(Protocol):
    async def list_by_document(self, document_id: UUID) -> list[Highlight]: ...

    async def create(self, candidate: HighlightCandidate) -> Highlight: ...

    async def delete(self, highlight_id: UUID) -> Tombstone: ...

    async def restore(self, tombstone: Tombstone) -> Highlight: ...


class ChatTransport(Protocol):
    async def ensure_available(self) -> None: ...

    def stream_turn(
        self, highlight_id: UUID, message: str, conversation_id: UUID | None
    ) -> AsyncIterator[Frame]: ...


async def _request_data(client: httpx.AsyncClient, method: str, url: str, **kwargs: Any) -> Any:
    """Send a request and return the "data" member of the response envelope.

    Raises:
        ReaderError: Mapped from the HTTP status of an error response.
        TransportError: Network failure or a body that is not an envelope.
    """
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        logger.warning("api_request_failed", method=method, url=url, error=type(e).__name__)
        raise TransportError("Could not reach the server") from e

    if response.is_error:
        raise error_from_response(response)
    if response.status_code == 204:
        return None

    try:
        return response.json()["data"]
    except (ValueError, KeyError, TypeError) as e:
        raise TransportError("Unexpected response from server") from e


class HttpHighlightStore:
    """HighlightStore backed by the REST API."""

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def list_by_document(self, document_id: UUID) -> list[Highlight]:
        data = await _request_data(self._client, "GET", f"/documents/{document_id}/highlights")
        return [Highlight.model_validate(h) for h in data["highlights"]]

    async def create(self, candidate: HighlightCandidate) -> Highlight:
        data = await _request_data(
            self._client, "POST", "/highlights", json=candidate.to_create_body()
        )
        return Highlight.model_validate(data)

    async def delete(self, highlight_id: UUID) -> Tombstone:
        data = await _request_data(self._client, "DELETE", f"/highlights/{highlight_id}")
        return Tombstone.model_validate(data["deleted"])

    async def restore(self, tombstone: Tombstone) -> Highlight:
        body = {"highlight": tombstone.model_dump(mode="json", by_alias=True)}
        data = await _request_data(self._client, "PUT", "/highlights/restore", json=body)
        return Highlight.model_validate(data)

    async def get_document(self, document_id: UUID) -> Document:
        data = await _request_data(self._client, "GET", f"/documents/{document_id}")
        return Document.model_validate(data)


class HttpChatTransport:
    """ChatTransport backed by the streaming /chat endpoint."""

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def ensure_available(self) -> None:
        """Raise ConfigurationError when the server has no AI provider configured."""
        data = await _request_data(self._client, "GET", "/chat/status")
        if not data.get("available"):
            raise ConfigurationError()

    async def stream_turn(
        self, highlight_id: UUID, message: str, conversation_id: UUID | None
    ) -> AsyncIterator[Frame]:
        """Open a chat turn and yield its decoded frames.

        Raises:
            ValidationError / NotFoundError / ConfigurationError: Rejected
                before the stream started.
            TransportError: Network failure or malformed frame.
        """
        body = {
            "highlightId": str(highlight_id),
            "message": message,
            "conversationId": str(conversation_id) if conversation_id else None,
        }
        try:
            async with self._client.stream("POST", "/chat", json=body) as response:
                if response.is_error:
                    await response.aread()
                    raise error_from_response(response)
                async for frame in decode_frames(response.aiter_text()):
                    yield frame
        except httpx.HTTPError as e:
            logger.warning("chat_stream_failed", error=type(e).__name__)
            raise TransportError("The connection to the server was lost") from e
