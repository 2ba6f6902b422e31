"""Deferred persistence of new highlights.

A new selection is staged as a candidate and only written to the store when
the first chat message about it is sent. Staging a newer candidate or
closing the chat discards the old one without any store effect.

Wherever a highlight is referenced, the reference is either Identified (a
stored highlight) or Pending (a candidate that is not in the store yet).
"""

from dataclasses import dataclass
from uuid import UUID

from blueberry.client.errors import InProgressError, ValidationError
from blueberry.client.models import Highlight, HighlightCandidate
from blueberry.client.store import HighlightStore
from blueberry.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Identified:
    highlight_id: UUID
    conversation_id: UUID | None = None


@dataclass(frozen=True)
class Pending:
    candidate: HighlightCandidate


HighlightRef = Identified | Pending


class PendingHighlightManager:
    """Holds at most one highlight candidate.

    States: empty, pending(candidate). Promotion returns to empty.
    """

    def __init__(self) -> None:
        self._candidate: HighlightCandidate | None = None
        self._promoting = False

    @property
    def candidate(self) -> HighlightCandidate | None:
        return self._candidate

    @property
    def is_pending(self) -> bool:
        return self._candidate is not None

    @property
    def is_promoting(self) -> bool:
        return self._promoting

    def stage(self, candidate: HighlightCandidate) -> Pending:
        """Make `candidate` the pending highlight, discarding any previous one."""
        if self._candidate is not None:
            logger.info("pending_highlight_replaced", page_number=self._candidate.page_number)
        self._candidate = candidate
        return Pending(candidate)

    def discard(self) -> HighlightCandidate | None:
        """Drop the pending candidate without touching the store."""
        candidate, self._candidate = self._candidate, None
        return candidate

    async def promote(self, store: HighlightStore) -> Highlight:
        """Persist the pending candidate and return the stored highlight.

        On failure the candidate stays pending so the user can retry.

        Raises:
            InProgressError: Another promotion is running.
            ValidationError: Nothing is pending.
            ReaderError: Whatever the store raised.
        """
        if self._promoting:
            raise InProgressError("A highlight is already being saved")
        candidate = self._candidate
        if candidate is None:
            raise ValidationError("There is no pending highlight to save")

        self._promoting = True
        try:
            highlight = await store.create(candidate)
        finally:
            self._promoting = False

        # A newer candidate staged while saving stays pending
        if self._candidate is candidate:
            self._candidate = None
        logger.info("pending_highlight_promoted", highlight_id=str(highlight.id))
        return highlight
