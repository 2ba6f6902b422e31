"""Reader session: the state of one open document and its chat panel.

ReaderSession owns everything the reader acts on: the open document, its
highlight list, the pending highlight, the highlight the chat panel is
about, the single undo slot for deletions, the chat view and the chat
orchestrator. Its store and transport are injected, so the same session
runs against the HTTP API or against in-memory fakes.

The highlight list is an immutable tuple that is replaced wholesale on
every change and refresh.
"""

from collections.abc import Iterable
from uuid import UUID

from blueberry.client.chat_view import DEFAULT_BOTTOM_THRESHOLD_PX, ChatView
from blueberry.client.errors import (
    ConflictError,
    NotFoundError,
    ReaderError,
    ValidationError,
)
from blueberry.client.geometry import Anchor, Rect, normalize
from blueberry.client.identity import resolve
from blueberry.client.models import Highlight, HighlightCandidate, Tombstone
from blueberry.client.orchestrator import ChatOrchestrator, ChatTurn, TurnState
from blueberry.client.pending import HighlightRef, Identified, Pending, PendingHighlightManager
from blueberry.client.store import ChatTransport, HighlightStore
from blueberry.logging import get_logger

logger = get_logger(__name__)


class ReaderSession:
    def __init__(
        self,
        store: HighlightStore,
        transport: ChatTransport,
        *,
        scroll_threshold: float = DEFAULT_BOTTOM_THRESHOLD_PX,
    ):
        self._store = store
        self.pending = PendingHighlightManager()
        self.orchestrator = ChatOrchestrator(store, transport, self.pending)
        self.view = ChatView(scroll_threshold)
        self.document_id: UUID | None = None
        self.highlights: tuple[Highlight, ...] = ()
        self.current_ref: HighlightRef | None = None
        self.tombstone: Tombstone | None = None
        # Bumped whenever the chat panel switches or closes, so a turn that
        # outlives its panel stops writing into the view
        self._chat_key = 0

    # Document and highlight list

    async def open_document(self, document_id: UUID) -> tuple[Highlight, ...]:
        """Switch to a document and load its highlights."""
        if self.view.is_open:
            self.close_chat()
        self.pending.discard()
        self.document_id = document_id
        self.highlights = ()
        self.tombstone = None
        return await self.refresh_highlights()

    async def refresh_highlights(self) -> tuple[Highlight, ...]:
        """Reload the highlight list from the store."""
        if self.document_id is None:
            raise ValidationError("No document is open")
        highlights = await self._store.list_by_document(self.document_id)
        self._replace_highlights(highlights)
        return self.highlights

    async def _reconcile(self) -> None:
        try:
            await self.refresh_highlights()
        except ReaderError as e:
            logger.warning("highlight_refresh_failed", error=type(e).__name__)

    def _replace_highlights(self, highlights: Iterable[Highlight]) -> None:
        self.highlights = tuple(highlights)

    def find_highlight(self, highlight_id: UUID) -> Highlight | None:
        for highlight in self.highlights:
            if highlight.id == highlight_id:
                return highlight
        return None

    # Selection and chat panel

    def select(
        self,
        text: str,
        raw_rect: Rect,
        scale: float,
        page: int,
        start_offset: int = 0,
        end_offset: int = 0,
    ) -> Anchor | None:
        """Normalize a text selection. Returns None when nothing was selected."""
        if not text.strip():
            return None
        anchor = normalize(raw_rect, scale, page, start_offset, end_offset)
        if anchor.is_empty:
            return None
        return anchor

    def ask(self, text: str, anchor: Anchor) -> HighlightRef:
        """Open the chat panel for a selected passage.

        A selection with the same text on the same page as a stored highlight
        reopens that highlight's conversation. Anything else is staged as a
        pending highlight that is saved with the first message.
        """
        if self.document_id is None:
            raise ValidationError("No document is open")
        if not text.strip():
            raise ValidationError("Select some text first")

        match = resolve(text, anchor.page, self.highlights)
        if match is not None:
            self.pending.discard()
            self._open_chat(self._identify(match), match.selected_text, match.messages)
        else:
            candidate = HighlightCandidate(
                document_id=self.document_id,
                page_number=anchor.page,
                anchor=anchor,
                selected_text=text,
            )
            self._open_chat(self.pending.stage(candidate), text)
        return self.current_ref

    async def open_highlight(self, highlight_id: UUID) -> HighlightRef:
        """Open the chat panel for a stored highlight."""
        highlight = self.find_highlight(highlight_id)
        if highlight is None:
            await self._reconcile()
            highlight = self.find_highlight(highlight_id)
        if highlight is None:
            raise NotFoundError("Highlight not found")

        self.pending.discard()
        self._open_chat(self._identify(highlight), highlight.selected_text, highlight.messages)
        return self.current_ref

    def close_chat(self) -> None:
        """Close the panel. A pending highlight is dropped; a running turn is not cancelled."""
        self.pending.discard()
        self.current_ref = None
        self.view.close()
        self._chat_key += 1

    def _open_chat(self, ref: HighlightRef, selected_text: str, messages=()) -> None:
        self.current_ref = ref
        self._chat_key += 1
        self.view.open(selected_text, messages)

    @staticmethod
    def _identify(highlight: Highlight) -> Identified:
        conversation_id = highlight.conversation.id if highlight.conversation else None
        return Identified(highlight.id, conversation_id)

    # Chat turns

    async def send(self, message: str) -> ChatTurn:
        """Send a message about the open highlight and stream the response into the view.

        Returns the final turn state. Failures are reported on the turn and
        in the view rather than raised.

        Raises:
            ValidationError: The chat panel is not open.
            InProgressError: A turn is already running.
        """
        ref = self.current_ref
        if ref is None:
            raise ValidationError("Select a passage before asking about it")

        chat_key = self._chat_key
        promoted_seen = False
        last: ChatTurn | None = None

        async for turn in self.orchestrator.run_turn(ref, message):
            last = turn
            current = self._chat_key == chat_key

            if turn.promoted is not None and not promoted_seen:
                promoted_seen = True
                self._adopt_promoted(turn.promoted)
                if current:
                    self.current_ref = Identified(turn.promoted.id)

            if current:
                self._apply_to_view(turn)

        assert last is not None
        if last.state is TurnState.COMPLETED:
            await self._reconcile()
            ref = self.current_ref
            reopened = isinstance(ref, Identified) and ref.highlight_id == last.highlight_id
            if self._chat_key == chat_key or reopened:
                self.current_ref = Identified(last.highlight_id, last.conversation_id)
                self._reload_messages(last.highlight_id)
        elif isinstance(last.error, NotFoundError):
            await self._reconcile()
        return last

    def _apply_to_view(self, turn: ChatTurn) -> None:
        if turn.state is TurnState.SENDING:
            self.view.begin_turn(turn.message)
        elif turn.state is TurnState.IDLE and turn.error is not None:
            self.view.abort_turn(turn.error.message)
        elif turn.state is TurnState.STREAMING:
            self.view.set_content(turn.content)
        elif turn.state is TurnState.COMPLETED:
            self.view.set_content(turn.content)
            self.view.complete()
        elif turn.state is TurnState.ERRORED:
            self.view.fail(turn.error_message or "Something went wrong")

    def _adopt_promoted(self, highlight: Highlight) -> None:
        """Add a freshly saved highlight to the list of the document it belongs to.

        A candidate for the same passage, staged while the save was in
        flight, becomes a reference to the saved highlight instead.
        """
        if highlight.document_id != self.document_id:
            return
        self._insert_highlight(highlight)

        candidate = self.pending.candidate
        if candidate is None or resolve(
            candidate.selected_text, candidate.page_number, [highlight]
        ) is None:
            return
        self.pending.discard()
        ref = self.current_ref
        if isinstance(ref, Pending) and ref.candidate is candidate:
            self.current_ref = Identified(highlight.id)

    def _insert_highlight(self, highlight: Highlight) -> None:
        others = [h for h in self.highlights if h.id != highlight.id]
        self._replace_highlights([*others, highlight])

    def _reload_messages(self, highlight_id: UUID | None) -> None:
        highlight = self.find_highlight(highlight_id) if highlight_id else None
        if highlight is not None and highlight.messages:
            self.view.load(highlight.messages)

    # Delete and undo

    async def delete_highlight(self, highlight_id: UUID) -> Tombstone:
        """Delete a highlight and its conversation, keeping one undo snapshot."""
        try:
            tombstone = await self._store.delete(highlight_id)
        except NotFoundError:
            await self._reconcile()
            raise

        self.tombstone = tombstone
        self._replace_highlights(h for h in self.highlights if h.id != highlight_id)
        ref = self.current_ref
        if isinstance(ref, Identified) and ref.highlight_id == highlight_id:
            self.close_chat()
        logger.info("highlight_deleted", highlight_id=str(highlight_id))
        return tombstone

    async def undo_delete(self) -> Highlight:
        """Restore the most recently deleted highlight.

        The undo slot is cleared once the restore succeeds or can never
        succeed (conflict, document gone). A transport failure keeps it for
        a retry.
        """
        tombstone = self.tombstone
        if tombstone is None:
            raise ValidationError("Nothing to undo")

        try:
            restored = await self._store.restore(tombstone)
        except (ConflictError, NotFoundError):
            self.tombstone = None
            await self._reconcile()
            raise

        self.tombstone = None
        self._insert_highlight(restored)
        await self._reconcile()
        return restored

    def clear_tombstone(self) -> None:
        self.tombstone = None
