"""Chat turn orchestration.

One turn moves through

    idle -> sending -> streaming -> completed | errored

If the highlight is still pending, it is promoted (persisted) during
``sending``; when that fails the turn returns to ``idle`` with the error and
the candidate stays pending. Failures after promotion leave the new
highlight in place and only error the turn. Only one turn may run at a time.
"""

from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass, field, replace
from enum import Enum
from uuid import UUID, uuid4

from blueberry.client.errors import (
    InProgressError,
    ReaderError,
    TransportError,
    ValidationError,
)
from blueberry.client.frames import Delta, Done, ErrorFrame
from blueberry.client.models import Highlight
from blueberry.client.pending import HighlightRef, Pending, PendingHighlightManager
from blueberry.client.store import ChatTransport, HighlightStore
from blueberry.logging import get_logger, set_turn_id

logger = get_logger(__name__)


class TurnState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ERRORED = "errored"


@dataclass
class ChatTurn:
    """State of one user-message-to-assistant-response cycle.

    Attributes:
        message: The user's message
        state: Current TurnState
        highlight_id: Target highlight, known once sending resolved it
        conversation_id: Conversation known before the turn, or the
            authoritative id from the done frame
        content: Assistant text received so far
        promoted: Highlight created by promoting a pending candidate
        error: The failure, for idle (aborted) and errored turns
    """

    message: str
    turn_id: str = field(default_factory=lambda: str(uuid4()))
    state: TurnState = TurnState.IDLE
    highlight_id: UUID | None = None
    conversation_id: UUID | None = None
    content: str = ""
    promoted: Highlight | None = None
    error: ReaderError | None = None

    @property
    def error_message(self) -> str | None:
        return self.error.message if self.error else None

    def snapshot(self) -> "ChatTurn":
        return replace(self)


class TurnFailedError(ReaderError):
    """The server ended the turn with an error frame."""


class ChatOrchestrator:
    """Runs chat turns against a store and a chat transport."""

    def __init__(
        self,
        store: HighlightStore,
        transport: ChatTransport,
        pending: PendingHighlightManager,
    ):
        self._store = store
        self._transport = transport
        self._pending = pending
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def run_turn(self, ref: HighlightRef, message: str) -> AsyncIterator[ChatTurn]:
        """Run one turn, yielding a snapshot after every state change and delta.

        The last snapshot is either terminal (completed/errored) or idle with
        an error when the turn never reached the server.

        Raises:
            InProgressError: Another turn is running.
        """
        if self._in_flight:
            raise InProgressError("Wait for the current response to finish")

        self._in_flight = True
        turn = ChatTurn(message=message)
        set_turn_id(turn.turn_id)
        try:
            if not message.strip():
                turn.error = ValidationError("Message cannot be empty")
                yield turn.snapshot()
                return

            turn.state = TurnState.SENDING
            yield turn.snapshot()

            try:
                await self._transport.ensure_available()
                if isinstance(ref, Pending):
                    turn.promoted = await self._pending.promote(self._store)
                    turn.highlight_id = turn.promoted.id
                else:
                    turn.highlight_id = ref.highlight_id
                    turn.conversation_id = ref.conversation_id
            except ReaderError as e:
                logger.info("chat_turn_aborted", error=type(e).__name__)
                turn.state = TurnState.IDLE
                turn.error = e
                yield turn.snapshot()
                return

            turn.state = TurnState.STREAMING
            yield turn.snapshot()

            async for snapshot in self._stream(turn):
                yield snapshot
        finally:
            self._in_flight = False
            set_turn_id(None)

    async def _stream(self, turn: ChatTurn) -> AsyncIterator[ChatTurn]:
        try:
            frames = self._transport.stream_turn(
                turn.highlight_id, turn.message, turn.conversation_id
            )
            async with aclosing(frames):
                async for frame in frames:
                    if isinstance(frame, Delta):
                        turn.content += frame.text
                        yield turn.snapshot()
                    elif isinstance(frame, Done):
                        turn.conversation_id = UUID(frame.conversation_id)
                        turn.state = TurnState.COMPLETED
                        logger.info("chat_turn_completed", response_chars=len(turn.content))
                        yield turn.snapshot()
                        return
                    elif isinstance(frame, ErrorFrame):
                        turn.state = TurnState.ERRORED
                        turn.error = TurnFailedError(frame.message)
                        logger.info("chat_turn_errored", reason="error_frame")
                        yield turn.snapshot()
                        return
            raise TransportError("The response ended unexpectedly")
        except ValueError as e:
            # Non-UUID conversationId in a done frame
            error: ReaderError = TransportError(f"Unexpected response from server: {e}")
        except ReaderError as e:
            error = e

        logger.info("chat_turn_errored", reason=type(error).__name__)
        turn.state = TurnState.ERRORED
        turn.error = error
        yield turn.snapshot()

    async def send(self, ref: HighlightRef, message: str) -> ChatTurn:
        """Run a turn to the end and return its final state."""
        last: ChatTurn | None = None
        async for last in self.run_turn(ref, message):
            pass
        assert last is not None
        return last

