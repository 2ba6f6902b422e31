"""Tests for chat turn orchestration.

Covers:
- Promotion of a pending highlight on the first message
- Streaming state transitions and accumulated content
- Error frames, missing terminal frames and transport failures
- Configuration errors surfaced before any store mutation
- One turn at a time
"""

import asyncio
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest

from blueberry.client.errors import (
    ConfigurationError,
    InProgressError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from blueberry.client.frames import Delta, Done, ErrorFrame
from blueberry.client.geometry import Anchor
from blueberry.client.models import HighlightCandidate
from blueberry.client.orchestrator import ChatOrchestrator, TurnFailedError, TurnState
from blueberry.client.pending import Identified, PendingHighlightManager
from tests.helpers import InMemoryHighlightStore, ScriptedTransport, make_highlight


def make_orchestrator(store=None, transport=None):
    pending = PendingHighlightManager()
    store = store or InMemoryHighlightStore()
    transport = transport or ScriptedTransport()
    return ChatOrchestrator(store, transport, pending), pending, store, transport


def stage_candidate(pending: PendingHighlightManager, text: str = "the passage"):
    return pending.stage(
        HighlightCandidate(
            document_id=uuid4(),
            page_number=2,
            anchor=Anchor(2, 5.0, 5.0, 50.0, 15.0),
            selected_text=text,
        )
    )


async def collect(orchestrator, ref, message="Why?"):
    return [turn async for turn in orchestrator.run_turn(ref, message)]


# =============================================================================
# Pending promotion
# =============================================================================


class TestPromotion:
    @pytest.mark.asyncio
    async def test_pending_ref_promoted_exactly_once(self):
        orchestrator, pending, store, transport = make_orchestrator()
        ref = stage_candidate(pending)

        turns = await collect(orchestrator, ref)

        assert len(store.created) == 1
        created_id = turns[-1].highlight_id
        assert created_id in store.highlights
        assert transport.requests == [(created_id, "Why?", None)]
        assert not pending.is_pending

    @pytest.mark.asyncio
    async def test_promoted_highlight_exists_before_request(self):
        orchestrator, pending, store, transport = make_orchestrator()
        seen = []
        transport.on_request = lambda highlight_id, _: seen.append(
            highlight_id in store.highlights
        )
        await collect(orchestrator, stage_candidate(pending))
        assert seen == [True]

    @pytest.mark.asyncio
    async def test_promote_failure_returns_to_idle_and_keeps_candidate(self):
        orchestrator, pending, store, transport = make_orchestrator()
        ref = stage_candidate(pending)
        store.fail_next = TransportError("offline")

        turns = await collect(orchestrator, ref)

        assert [t.state for t in turns] == [TurnState.SENDING, TurnState.IDLE]
        assert isinstance(turns[-1].error, TransportError)
        assert pending.candidate is ref.candidate
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_identified_ref_does_not_create(self):
        highlight = make_highlight()
        orchestrator, _, store, transport = make_orchestrator(
            store=InMemoryHighlightStore([highlight])
        )
        conversation_id = uuid4()

        await collect(orchestrator, Identified(highlight.id, conversation_id))

        assert store.created == []
        assert transport.requests == [(highlight.id, "Why?", conversation_id)]


# =============================================================================
# Streaming
# =============================================================================


class TestStreaming:
    @pytest.mark.asyncio
    async def test_state_sequence_and_content(self):
        orchestrator, pending, _, transport = make_orchestrator()

        turns = await collect(orchestrator, stage_candidate(pending))

        assert [t.state for t in turns] == [
            TurnState.SENDING,
            TurnState.STREAMING,
            TurnState.STREAMING,
            TurnState.STREAMING,
            TurnState.COMPLETED,
        ]
        assert [t.content for t in turns[2:]] == ["Hel", "Hello", "Hello"]
        assert turns[-1].conversation_id == transport.conversation_id
        assert turns[-1].error is None

    @pytest.mark.asyncio
    async def test_snapshots_are_independent(self):
        orchestrator, pending, _, _ = make_orchestrator()
        turns = await collect(orchestrator, stage_candidate(pending))
        assert turns[0].state is TurnState.SENDING
        assert turns[0].content == ""

    @pytest.mark.asyncio
    async def test_error_frame_errors_turn_with_partial_content(self):
        transport = ScriptedTransport(frames=[Delta("Par"), ErrorFrame("rate limited")])
        orchestrator, pending, store, _ = make_orchestrator(transport=transport)

        turns = await collect(orchestrator, stage_candidate(pending))

        final = turns[-1]
        assert final.state is TurnState.ERRORED
        assert isinstance(final.error, TurnFailedError)
        assert final.error_message == "rate limited"
        assert final.content == "Par"
        # The promoted highlight is kept
        assert len(store.highlights) == 1

    @pytest.mark.asyncio
    async def test_stream_without_done_errors(self):
        transport = ScriptedTransport(frames=[Delta("Hel")])
        orchestrator, pending, _, _ = make_orchestrator(transport=transport)

        final = (await collect(orchestrator, stage_candidate(pending)))[-1]

        assert final.state is TurnState.ERRORED
        assert isinstance(final.error, TransportError)

    @pytest.mark.asyncio
    async def test_frames_after_done_ignored(self):
        conversation_id = uuid4()
        transport = ScriptedTransport(
            frames=[Delta("a"), Done(str(conversation_id)), Delta("ignored")]
        )
        orchestrator, pending, _, _ = make_orchestrator(transport=transport)

        final = (await collect(orchestrator, stage_candidate(pending)))[-1]

        assert final.state is TurnState.COMPLETED
        assert final.content == "a"
        assert final.conversation_id == conversation_id

    @pytest.mark.asyncio
    async def test_non_uuid_conversation_id_errors(self):
        transport = ScriptedTransport(frames=[Done("c9")])
        orchestrator, pending, _, _ = make_orchestrator(transport=transport)

        final = (await collect(orchestrator, stage_candidate(pending)))[-1]

        assert final.state is TurnState.ERRORED
        assert isinstance(final.error, TransportError)

    @pytest.mark.asyncio
    async def test_rejected_request_errors_turn(self):
        highlight = make_highlight()
        transport = ScriptedTransport()
        transport.error = NotFoundError("Highlight not found", "E_HIGHLIGHT_NOT_FOUND")
        orchestrator, _, _, _ = make_orchestrator(
            store=InMemoryHighlightStore([highlight]), transport=transport
        )

        final = (await collect(orchestrator, Identified(highlight.id)))[-1]

        assert final.state is TurnState.ERRORED
        assert isinstance(final.error, NotFoundError)


# =============================================================================
# Preconditions
# =============================================================================


class TestPreconditions:
    @pytest.mark.asyncio
    async def test_configuration_error_before_any_mutation(self):
        transport = ScriptedTransport()
        transport.unavailable = ConfigurationError()
        orchestrator, pending, store, _ = make_orchestrator(transport=transport)
        ref = stage_candidate(pending)

        final = (await collect(orchestrator, ref))[-1]

        assert final.state is TurnState.IDLE
        assert isinstance(final.error, ConfigurationError)
        assert store.created == []
        assert pending.candidate is ref.candidate

    @pytest.mark.asyncio
    async def test_availability_checked_before_promotion(self):
        store = AsyncMock()
        transport = ScriptedTransport()
        transport.unavailable = ConfigurationError()
        orchestrator, pending, _, _ = make_orchestrator(store=store, transport=transport)

        await orchestrator.send(stage_candidate(pending), "Why?")

        store.create.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message", ["", "   \n"])
    async def test_blank_message_rejected(self, message):
        orchestrator, pending, store, transport = make_orchestrator()

        turns = await collect(orchestrator, stage_candidate(pending), message)

        assert len(turns) == 1
        assert isinstance(turns[0].error, ValidationError)
        assert store.created == []
        assert transport.requests == []
        assert not orchestrator.in_flight

    @pytest.mark.asyncio
    async def test_second_turn_rejected_while_in_flight(self):
        release = asyncio.Event()
        transport = ScriptedTransport()
        original_stream = transport.stream_turn

        async def slow_stream(highlight_id, message, conversation_id):
            await release.wait()
            async for frame in original_stream(highlight_id, message, conversation_id):
                yield frame

        transport.stream_turn = slow_stream
        highlight = make_highlight()
        orchestrator, _, _, _ = make_orchestrator(
            store=InMemoryHighlightStore([highlight]), transport=transport
        )
        ref = Identified(highlight.id)

        first = asyncio.create_task(orchestrator.send(ref, "one"))
        for _ in range(5):
            await asyncio.sleep(0)
        assert orchestrator.in_flight

        with pytest.raises(InProgressError):
            await orchestrator.send(ref, "two")

        release.set()
        final = await first
        assert final.state is TurnState.COMPLETED
        assert not orchestrator.in_flight

    @pytest.mark.asyncio
    async def test_send_returns_final_turn(self):
        orchestrator, pending, _, transport = make_orchestrator()
        final = await orchestrator.send(stage_candidate(pending), "Explain")
        assert final.state is TurnState.COMPLETED
        assert final.content == "Hello"
        assert isinstance(final.highlight_id, UUID)
        assert transport.requests[0][1] == "Explain"
