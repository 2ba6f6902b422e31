"""Reader-side core: selection geometry, highlight identity, chat streaming and session state."""

from blueberry.client.chat_view import ChatView, ScrollFollower, ViewMessage, ViewStatus
from blueberry.client.errors import (
    ConfigurationError,
    ConflictError,
    InProgressError,
    MalformedFrameError,
    NotFoundError,
    ReaderError,
    TransportError,
    ValidationError,
)
from blueberry.client.frames import Delta, Done, ErrorFrame, Frame, FrameDecoder, decode_frames
from blueberry.client.geometry import Anchor, Rect, denormalize, normalize, overlay_rect
from blueberry.client.identity import resolve
from blueberry.client.models import (
    Conversation,
    Document,
    Highlight,
    HighlightCandidate,
    Message,
    Tombstone,
)
from blueberry.client.orchestrator import ChatOrchestrator, ChatTurn, TurnFailedError, TurnState
from blueberry.client.pending import HighlightRef, Identified, Pending, PendingHighlightManager
from blueberry.client.session import ReaderSession
from blueberry.client.store import (
    ChatTransport,
    HighlightStore,
    HttpChatTransport,
    HttpHighlightStore,
)

__all__ = [
    "Anchor",
    "ChatOrchestrator",
    "ChatTransport",
    "ChatTurn",
    "ChatView",
    "ConfigurationError",
    "ConflictError",
    "Conversation",
    "Delta",
    "Document",
    "Done",
    "ErrorFrame",
    "Frame",
    "FrameDecoder",
    "Highlight",
    "HighlightCandidate",
    "HighlightRef",
    "HighlightStore",
    "HttpChatTransport",
    "HttpHighlightStore",
    "Identified",
    "InProgressError",
    "MalformedFrameError",
    "Message",
    "NotFoundError",
    "Pending",
    "PendingHighlightManager",
    "ReaderError",
    "ReaderSession",
    "Rect",
    "ScrollFollower",
    "Tombstone",
    "TransportError",
    "TurnFailedError",
    "TurnState",
    "ValidationError",
    "ViewMessage",
    "ViewStatus",
    "decode_frames",
    "denormalize",
    "normalize",
    "overlay_rect",
    "resolve",
]
