"""Chat stream frame decoding.

The chat endpoint sends Server-Sent Events frames separated by a blank line:

    data: {"text": "Hel"}

    data: {"done": true, "conversationId": "..."}

The transport may split a frame across chunks, so chunks are buffered and
only complete frames are parsed. A complete frame that is not a JSON object
of a known shape raises MalformedFrameError. A fragment still buffered when
the stream closes is parsed if it happens to be whole and otherwise dropped
as transport noise.
"""

import json
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass

from blueberry.client.errors import MalformedFrameError
from blueberry.logging import get_logger

logger = get_logger(__name__)

FRAME_DELIMITER = "\n\n"


@dataclass(frozen=True)
class Delta:
    text: str


@dataclass(frozen=True)
class Done:
    conversation_id: str


@dataclass(frozen=True)
class ErrorFrame:
    message: str


Frame = Delta | Done | ErrorFrame


def _frame_data(raw: str) -> str | None:
    """Join the data lines of one raw frame. None when it carries no data."""
    data_lines = []
    for line in raw.split("\n"):
        if not line or line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if field == "data":
            data_lines.append(value[1:] if value.startswith(" ") else value)
    if not data_lines:
        return None
    return "\n".join(data_lines)


def _payload_to_frame(payload: object) -> Frame:
    if not isinstance(payload, dict):
        raise MalformedFrameError("Stream frame is not an object")

    if "error" in payload:
        return ErrorFrame(str(payload["error"]))

    if payload.get("done") is True:
        conversation_id = payload.get("conversationId")
        if not isinstance(conversation_id, str) or not conversation_id:
            raise MalformedFrameError("Done frame without conversationId")
        return Done(conversation_id)

    text = payload.get("text")
    if isinstance(text, str):
        return Delta(text)

    raise MalformedFrameError("Unrecognized stream frame")


def parse_frame(raw: str) -> Frame | None:
    """Parse one complete frame.

    Returns None for frames with no data lines (comments, keepalives).

    Raises:
        MalformedFrameError: The data is not JSON or not a known frame shape.
    """
    data = _frame_data(raw)
    if data is None:
        return None
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        raise MalformedFrameError("Stream frame is not valid JSON") from e
    return _payload_to_frame(payload)


class FrameDecoder:
    """Incremental decoder from text chunks to frames."""

    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, chunk: str) -> list[Frame]:
        """Add a chunk and return every frame it completed, in order."""
        self._buffer = (self._buffer + chunk).replace("\r\n", "\n")
        frames: list[Frame] = []
        while FRAME_DELIMITER in self._buffer:
            raw, self._buffer = self._buffer.split(FRAME_DELIMITER, 1)
            frame = parse_frame(raw)
            if frame is not None:
                frames.append(frame)
        return frames

    def close(self) -> list[Frame]:
        """Flush at end of stream."""
        remainder, self._buffer = self._buffer, ""
        if not remainder.strip():
            return []
        try:
            frame = parse_frame(remainder)
        except MalformedFrameError:
            logger.info("partial_frame_discarded", fragment_chars=len(remainder))
            return []
        return [frame] if frame is not None else []


async def decode_frames(chunks: AsyncIterable[str]) -> AsyncIterator[Frame]:
    """Decode an async stream of text chunks into frames."""
    decoder = FrameDecoder()
    async for chunk in chunks:
        for frame in decoder.feed(chunk):
            yield frame
    for frame in decoder.close():
        yield frame
