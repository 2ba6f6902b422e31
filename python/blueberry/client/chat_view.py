"""Chat panel state and scroll-follow behaviour.

ChatView holds the messages shown in the panel and whether a response is
streaming. ScrollFollower decides when streamed content may move the
viewport: only if the reader was at or near the bottom when the content
arrived. Content that arrives while the reader is scrolled up raises a
"new message" affordance once the stream ends; jumping to it scrolls to the
start of the newest assistant message so it can be read from the top.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from blueberry.client.models import Message

DEFAULT_BOTTOM_THRESHOLD_PX = 40.0


class ScrollFollower:
    """Tracks the reader's scroll position relative to the bottom of the panel."""

    def __init__(self, threshold: float = DEFAULT_BOTTOM_THRESHOLD_PX):
        self.threshold = threshold
        self.at_bottom = True
        self.affordance_visible = False
        self._streaming = False
        self._missed_content = False

    def on_scroll(self, scroll_top: float, viewport_height: float, content_height: float) -> None:
        """Record a scroll position. Reaching the bottom clears the affordance."""
        distance = content_height - (scroll_top + viewport_height)
        self.at_bottom = distance <= self.threshold
        if self.at_bottom:
            self._missed_content = False
            self.affordance_visible = False

    def stream_started(self) -> None:
        self._streaming = True
        self._missed_content = False

    def content_arrived(self) -> bool:
        """Return True if the view should auto-scroll to show new content."""
        if self.at_bottom:
            return True
        if self._streaming:
            self._missed_content = True
        return False

    def stream_ended(self) -> bool:
        """Finish the stream. Returns True if the affordance was raised now."""
        raised = self._streaming and self._missed_content and not self.at_bottom
        self._streaming = False
        self._missed_content = False
        if raised:
            self.affordance_visible = True
        return raised

    def acknowledge(self) -> None:
        self.affordance_visible = False

    def reset(self) -> None:
        self.at_bottom = True
        self.affordance_visible = False
        self._streaming = False
        self._missed_content = False


class ViewStatus(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    ERROR = "error"


@dataclass
class ViewMessage:
    role: str
    content: str
    id: UUID | None = None
    is_error: bool = False


class ChatView:
    """State of the chat panel for one highlight."""

    def __init__(self, scroll_threshold: float = DEFAULT_BOTTOM_THRESHOLD_PX):
        self.follower = ScrollFollower(scroll_threshold)
        self.messages: list[ViewMessage] = []
        self.status = ViewStatus.IDLE
        self.error_message: str | None = None
        self.is_open = False
        self.selected_text: str | None = None
        self._pending_index: int | None = None

    def open(self, selected_text: str, messages: Iterable[Message] = ()) -> None:
        """Open the panel for a passage with its stored messages."""
        self.is_open = True
        self.selected_text = selected_text
        self.follower.reset()
        self.load(messages)

    def close(self) -> None:
        self.is_open = False
        self.selected_text = None
        self.messages = []
        self.status = ViewStatus.IDLE
        self.error_message = None
        self._pending_index = None
        self.follower.reset()

    def load(self, messages: Iterable[Message]) -> None:
        """Replace the shown messages with stored ones."""
        self.messages = [ViewMessage(role=m.role, content=m.content, id=m.id) for m in messages]
        self.status = ViewStatus.IDLE
        self.error_message = None
        self._pending_index = None

    def begin_turn(self, user_message: str) -> None:
        """Show the user's message and an empty assistant message to stream into."""
        self.error_message = None
        self.messages.append(ViewMessage(role="user", content=user_message))
        self.messages.append(ViewMessage(role="assistant", content=""))
        self._pending_index = len(self.messages) - 1
        self.status = ViewStatus.STREAMING
        self.follower.stream_started()

    def set_content(self, content: str) -> bool:
        """Update the streaming assistant message. Returns True to auto-scroll."""
        if self._pending_index is None:
            return False
        self.messages[self._pending_index].content = content
        return self.follower.content_arrived()

    def complete(self) -> bool:
        """End the turn successfully. Returns True if the affordance was raised."""
        self.status = ViewStatus.IDLE
        self._pending_index = None
        return self.follower.stream_ended()

    def fail(self, message: str) -> bool:
        """End the turn with an error shown in place of the assistant message.

        The error text counts as new content, so a reader scrolled up gets
        the affordance. Returns True if it was raised.
        """
        if self._pending_index is not None:
            pending = self.messages[self._pending_index]
            pending.content = message
            pending.is_error = True
            self.follower.content_arrived()
        self.status = ViewStatus.ERROR
        self.error_message = message
        self._pending_index = None
        return self.follower.stream_ended()

    def abort_turn(self, message: str) -> None:
        """Undo begin_turn for a turn that never reached the server."""
        if self._pending_index is not None:
            del self.messages[self._pending_index - 1 : self._pending_index + 1]
        self._pending_index = None
        self.status = ViewStatus.IDLE
        self.error_message = message
        self.follower.stream_ended()

    def newest_assistant_index(self) -> int | None:
        for index in range(len(self.messages) - 1, -1, -1):
            if self.messages[index].role == "assistant":
                return index
        return None

    def jump_to_newest(self, message_offsets: Sequence[float]) -> float | None:
        """Scroll target for the start of the newest assistant message.

        Args:
            message_offsets: Laid-out top offset of each message, in order.

        Returns:
            The offset to scroll to, or None when there is no assistant message.
        """
        self.follower.acknowledge()
        index = self.newest_assistant_index()
        if index is None or index >= len(message_offsets):
            return None
        return message_offsets[index]
