"""Tests for chat stream frame decoding."""

import pytest

from blueberry.client.errors import MalformedFrameError, TransportError
from blueberry.client.frames import (
    Delta,
    Done,
    ErrorFrame,
    FrameDecoder,
    decode_frames,
    parse_frame,
)

STREAM = (
    'data: {"text": "Hel"}\n\n'
    'data: {"text": "lo"}\n\n'
    'data: {"done": true, "conversationId": "c9"}\n\n'
)


async def chunks_of(*parts: str):
    for part in parts:
        yield part


class TestParseFrame:
    def test_delta(self):
        assert parse_frame('data: {"text": "Hi"}') == Delta("Hi")

    def test_done(self):
        assert parse_frame('data: {"done": true, "conversationId": "c9"}') == Done("c9")

    def test_error(self):
        assert parse_frame('data: {"error": "rate limited"}') == ErrorFrame("rate limited")

    def test_comment_only_frame_ignored(self):
        assert parse_frame(": keepalive") is None

    def test_data_without_space(self):
        assert parse_frame('data:{"text": "x"}') == Delta("x")

    @pytest.mark.parametrize(
        "raw",
        [
            "data: not json",
            "data: [1, 2]",
            'data: {"unknown": 1}',
            'data: {"done": true}',
            'data: {"text": 5}',
        ],
    )
    def test_malformed_frames(self, raw):
        with pytest.raises(MalformedFrameError):
            parse_frame(raw)

    def test_malformed_is_transport_error(self):
        assert issubclass(MalformedFrameError, TransportError)


class TestFrameDecoder:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "parts",
        [
            (STREAM,),
            tuple(STREAM),
            (STREAM[:5], STREAM[5:23], STREAM[23:24], STREAM[24:]),
            ('data: {"te', 'xt": "Hel"}\n', '\ndata: {"text": "lo"}\n\nda', STREAM[47:]),
        ],
    )
    async def test_arbitrary_splits_yield_same_frames(self, parts):
        frames = [f async for f in decode_frames(chunks_of(*parts))]
        assert frames == [Delta("Hel"), Delta("lo"), Done("c9")]
        assert "".join(f.text for f in frames if isinstance(f, Delta)) == "Hello"

    def test_crlf_delimiters(self):
        decoder = FrameDecoder()
        frames = decoder.feed('data: {"text": "a"}\r\n\r\ndata: {"text": "b"}\r\n\r\n')
        assert frames == [Delta("a"), Delta("b")]

    def test_crlf_split_across_chunks(self):
        decoder = FrameDecoder()
        assert decoder.feed('data: {"text": "a"}\r') == []
        assert decoder.feed("\n\r\n") == [Delta("a")]

    def test_incomplete_trailing_fragment_discarded(self):
        decoder = FrameDecoder()
        assert decoder.feed('data: {"text": "a"}\n\ndata: {"tex') == [Delta("a")]
        assert decoder.close() == []

    def test_complete_trailing_frame_without_delimiter_kept(self):
        decoder = FrameDecoder()
        decoder.feed('data: {"done": true, "conversationId": "c9"}')
        assert decoder.close() == [Done("c9")]

    def test_malformed_complete_frame_raises(self):
        decoder = FrameDecoder()
        with pytest.raises(MalformedFrameError):
            decoder.feed("data: {oops}\n\n")
