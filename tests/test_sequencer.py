"""Tests for LoadSequencer."""

from __future__ import annotations

import asyncio

import pytest

from conftest import make_record, settle
from marginalia.reconcile.sequencer import LoadSequencer, SessionState

RECORDS_A = [make_record("a1", "alpha", 0, document_id="docA")]
RECORDS_A2 = [make_record("a1", "alpha", 0, document_id="docA"), make_record("a2", "beta", 6, document_id="docA")]
RECORDS_B = [make_record("b1", "bravo", 0, document_id="docB")]


class TestSessionState:
    """Test SessionState defaults."""

    def test_defaults(self) -> None:
        state = SessionState()

        assert state.load_seq == 0
        assert state.active_document_id is None
        assert state.records == []
        assert state.notes == []
        assert state.is_loaded is False
        assert state.recovered_document_ids == set()


class TestLoadSequencer:
    """Test ordering of overlapping loads."""

    @pytest.mark.asyncio
    async def test_single_load_applies(self, memory_store) -> None:
        record = make_record("h1", "text", 0)
        memory_store.records[record.id] = record
        note = await memory_store.create_note("h1", "hello")
        state = SessionState()

        applied = await LoadSequencer(memory_store).load(state, "doc-1")

        assert applied is True
        assert state.records == [record]
        assert state.notes == [note]
        assert state.is_loaded is True
        assert state.active_document_id == "doc-1"
        assert state.load_seq == 1

    def test_begin_marks_state_loading(self) -> None:
        state = SessionState(is_loaded=True)

        seq = LoadSequencer.begin(state, "doc-9")

        assert seq == 1
        assert state.active_document_id == "doc-9"
        assert state.is_loaded is False

    def test_is_current(self) -> None:
        state = SessionState()
        seq = LoadSequencer.begin(state, "docA")

        assert LoadSequencer.is_current(state, seq, "docA")
        assert not LoadSequencer.is_current(state, seq, "docB")
        LoadSequencer.begin(state, "docA")
        assert not LoadSequencer.is_current(state, seq, "docA")

    @pytest.mark.asyncio
    async def test_out_of_order_completion_keeps_latest(self, gated_store) -> None:
        """load(A), load(B); B resolves first, then A. State reflects B."""
        state = SessionState()
        sequencer = LoadSequencer(gated_store)

        task_a = asyncio.create_task(sequencer.load(state, "docA"))
        task_b = asyncio.create_task(sequencer.load(state, "docB"))
        await settle()

        gated_store.pending["docB"][0].set_result(RECORDS_B)
        assert await task_b is True
        assert state.records == RECORDS_B

        gated_store.pending["docA"][0].set_result(RECORDS_A)
        assert await task_a is False
        assert state.records == RECORDS_B
        assert state.active_document_id == "docB"
        assert state.is_loaded is True

    @pytest.mark.asyncio
    async def test_in_order_completion_keeps_latest(self, gated_store) -> None:
        state = SessionState()
        sequencer = LoadSequencer(gated_store)

        task_a = asyncio.create_task(sequencer.load(state, "docA"))
        task_b = asyncio.create_task(sequencer.load(state, "docB"))
        await settle()

        gated_store.pending["docA"][0].set_result(RECORDS_A)
        assert await task_a is False
        assert state.records == []
        assert state.is_loaded is False

        gated_store.pending["docB"][0].set_result(RECORDS_B)
        assert await task_b is True
        assert state.records == RECORDS_B

    @pytest.mark.asyncio
    async def test_switch_back_ignores_first_load(self, gated_store) -> None:
        """A -> B -> A: neither the slow first A nor B overwrite the second A."""
        state = SessionState()
        sequencer = LoadSequencer(gated_store)

        first_a = asyncio.create_task(sequencer.load(state, "docA"))
        load_b = asyncio.create_task(sequencer.load(state, "docB"))
        second_a = asyncio.create_task(sequencer.load(state, "docA"))
        await settle()

        gated_store.pending["docA"][1].set_result(RECORDS_A2)
        assert await second_a is True
        assert state.records == RECORDS_A2

        gated_store.pending["docB"][0].set_result(RECORDS_B)
        gated_store.pending["docA"][0].set_result(RECORDS_A)
        assert await load_b is False
        assert await first_a is False
        assert state.records == RECORDS_A2
        assert state.load_seq == 3

    @pytest.mark.asyncio
    async def test_failure_of_current_load_propagates(self, gated_store) -> None:
        state = SessionState()
        task = asyncio.create_task(LoadSequencer(gated_store).load(state, "docA"))
        await settle()

        gated_store.pending["docA"][0].set_exception(RuntimeError("disk gone"))

        with pytest.raises(RuntimeError):
            await task

    @pytest.mark.asyncio
    async def test_failure_of_stale_load_is_discarded(self, gated_store) -> None:
        state = SessionState()
        sequencer = LoadSequencer(gated_store)
        stale = asyncio.create_task(sequencer.load(state, "docA"))
        fresh = asyncio.create_task(sequencer.load(state, "docB"))
        await settle()

        gated_store.pending["docA"][0].set_exception(RuntimeError("disk gone"))
        gated_store.pending["docB"][0].set_result(RECORDS_B)

        assert await stale is False
        assert await fresh is True
