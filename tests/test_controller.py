"""Batch lifecycle controller tests — pure decisions over snapshots."""

import asyncio

import pytest

from survey_engine.controller import (
    InFlightGuard,
    Observation,
    ai_slots_needed,
    batch_range,
    batches_in_range,
    decide,
    fixed_indices_in_range,
    is_unanswered,
    validate_index_range,
)
from survey_engine.errors import SurveyValidationError
from survey_engine.models.answer import StoredAnswer


def _obs(answered, materialized, analyses=(), target=25, cont=False):
    return Observation(
        answered_count=answered,
        question_indices=set(range(1, materialized + 1)),
        analysis_batch_indices=set(analyses),
        report_target=target,
        continue_beyond_target=cont,
    )


class TestRanges:

    def test_batch_range(self):
        rng = batch_range(3)
        assert (rng.start_index, rng.end_index) == (11, 15)
        assert rng.indices == [11, 12, 13, 14, 15]

    def test_batch_range_rejects_zero(self):
        with pytest.raises(SurveyValidationError):
            batch_range(0)

    @pytest.mark.parametrize("start,end", [(0, 5), (6, 5), (-1, 3)])
    def test_invalid_index_range(self, start, end):
        with pytest.raises(SurveyValidationError):
            validate_index_range(start, end)

    def test_batches_in_range(self):
        assert batches_in_range(1, 5) == [1]
        assert batches_in_range(6, 10) == [2]
        assert batches_in_range(3, 7) == [1, 2]
        assert batches_in_range(5, 16) == [1, 2, 3, 4]

    def test_fixed_indices_clip_to_range(self):
        assert fixed_indices_in_range(1, 5, 3) == [1, 2, 3]
        assert fixed_indices_in_range(6, 10, 7) == [6, 7]
        assert fixed_indices_in_range(6, 10, 3) == []

    def test_ai_slots_exclude_fixed_and_existing(self):
        assert ai_slots_needed(1, 5, [1, 2, 3], []) == [4, 5]
        assert ai_slots_needed(1, 5, [], [1, 2, 3, 4, 5]) == []
        assert ai_slots_needed(6, 10, [], [7]) == [6, 8, 9, 10]


class TestDecide:

    def test_fresh_session_requests_first_batch(self):
        decision = decide(_obs(0, 0))
        assert decision.state == "awaiting_first_batch"
        assert decision.batch_to_request.start_index == 1
        assert decision.analysis_to_request is None
        assert not decision.can_finalize

    def test_first_batch_present_waits(self):
        decision = decide(_obs(0, 5))
        assert decision.state == "awaiting_answers"
        assert decision.batch_to_request is None

    def test_mid_batch_waits(self):
        decision = decide(_obs(3, 5))
        assert decision.state == "awaiting_answers"
        assert decision.analysis_to_request is None
        assert decision.batch_to_request is None

    def test_boundary_requests_analysis_and_next_batch(self):
        decision = decide(_obs(5, 5))
        assert decision.state == "batch_boundary"
        assert decision.analysis_to_request.batch_index == 1
        assert decision.batch_to_request.batch_index == 2
        assert decision.can_finalize

    def test_boundary_with_everything_present(self):
        decision = decide(_obs(5, 10, analyses=[1]))
        assert decision.state == "awaiting_answers"
        assert decision.analysis_to_request is None
        assert decision.batch_to_request is None

    def test_target_reached_stops_batches(self):
        decision = decide(_obs(10, 10, target=10))
        assert decision.target_reached
        assert decision.batch_to_request is None
        assert decision.analysis_to_request.batch_index == 2
        assert decision.can_continue_beyond_target

    def test_target_reached_after_analysis(self):
        decision = decide(_obs(10, 10, analyses=[1, 2], target=10))
        assert decision.state == "target_reached"

    def test_continue_beyond_target_rearms_one_batch(self):
        decision = decide(_obs(10, 10, analyses=[1, 2], target=10, cont=True))
        assert decision.batch_to_request.start_index == 11
        assert decision.batch_to_request.end_index == 15

    def test_continue_flag_ignored_off_boundary(self):
        decision = decide(_obs(12, 15, analyses=[1, 2], target=10, cont=True))
        assert decision.batch_to_request is None


class TestIsUnanswered:

    @pytest.mark.parametrize("qtype", ["radio", "dropdown", "scale"])
    def test_selected_option_types(self, qtype):
        assert is_unanswered(qtype, StoredAnswer())
        assert not is_unanswered(qtype, StoredAnswer(selected_option=0))

    def test_checkbox(self):
        assert is_unanswered("checkbox", StoredAnswer(selected_options=None))
        assert is_unanswered("checkbox", StoredAnswer(selected_options=[]))
        assert not is_unanswered("checkbox", StoredAnswer(selected_options=[2]))

    @pytest.mark.parametrize("qtype", ["text", "textarea"])
    def test_text_types(self, qtype):
        assert is_unanswered(qtype, StoredAnswer(answer_text=""))
        assert not is_unanswered(qtype, StoredAnswer(answer_text="because"))

    def test_missing_row(self):
        assert is_unanswered("radio", None)


class TestInFlightGuard:

    @pytest.mark.asyncio
    async def test_second_claim_is_refused_while_held(self):
        guard = InFlightGuard()
        async with guard.claim("s1", "batch", 2) as first:
            assert first
            async with guard.claim("s1", "batch", 2) as second:
                assert not second
            assert guard.is_held("s1", "batch", 2)
        assert not guard.is_held("s1", "batch", 2)

    @pytest.mark.asyncio
    async def test_released_on_error(self):
        guard = InFlightGuard()
        with pytest.raises(RuntimeError):
            async with guard.claim("s1", "analysis", 1):
                raise RuntimeError("boom")
        assert not guard.is_held("s1", "analysis", 1)

    @pytest.mark.asyncio
    async def test_concurrent_claims_only_one_wins(self):
        guard = InFlightGuard()
        wins = []

        async def worker():
            async with guard.claim("s1", "batch", 1) as claimed:
                wins.append(claimed)
                await asyncio.sleep(0.01)

        await asyncio.gather(worker(), worker())
        assert sorted(wins) == [False, True]
