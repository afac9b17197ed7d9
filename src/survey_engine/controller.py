"""Batch lifecycle controller — decides what a session needs next.

The session's state is never stored; it is derived each time from a
snapshot of counts and existing rows.  :func:`decide` is a pure function
over that snapshot, and the orchestrator is the thin I/O shell around it:

    observation = Observation(answered_count=5, question_indices={1..5}, ...)
    decision = decide(observation)
    decision.analysis_to_request   # BatchRange(batch_index=1, start=1, end=5)
    decision.batch_to_request      # BatchRange(batch_index=2, start=6, end=10)

Rules, in order:

  - nothing answered yet: materialize batch 1 if it is incomplete
  - at a batch boundary (answered_count > 0 and a multiple of 5):
      * request the analysis for the batch just finished if it is missing
      * request the next batch if it is incomplete and the target is not
        reached, or the caller explicitly opted to continue past it
  - finalization is available as soon as one full batch is answered
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Iterable, Literal

from pydantic import BaseModel, Field

from survey_engine.constants import BATCH_SIZE, MIN_ANSWERS_FOR_REPORT
from survey_engine.errors import SurveyValidationError

if TYPE_CHECKING:
    from survey_engine.models.answer import StoredAnswer

logger = logging.getLogger(__name__)

ControllerState = Literal[
    "awaiting_first_batch", "awaiting_answers", "batch_boundary", "target_reached"
]


class BatchRange(BaseModel):
    """Inclusive index range ``[start_index, end_index]`` of one batch."""

    batch_index: int
    start_index: int
    end_index: int

    @property
    def indices(self) -> list[int]:
        return list(range(self.start_index, self.end_index + 1))


class Observation(BaseModel):
    """Snapshot of a session, taken right before a decision."""

    answered_count: int = Field(ge=0)
    question_indices: set[int] = Field(default_factory=set)
    analysis_batch_indices: set[int] = Field(default_factory=set)
    report_target: int
    continue_beyond_target: bool = False


class Decision(BaseModel):
    """What the orchestrator should do, and what the UI may offer."""

    state: ControllerState
    analysis_to_request: BatchRange | None = None
    batch_to_request: BatchRange | None = None
    can_finalize: bool = False
    can_continue_beyond_target: bool = False
    target_reached: bool = False


# ---------------------------------------------------------------------------
# Range helpers
# ---------------------------------------------------------------------------

def batch_range(batch_index: int) -> BatchRange:
    """Return the index range covered by a 1-based batch index."""
    if batch_index < 1:
        raise SurveyValidationError(f"batch_index must be >= 1, got {batch_index}")
    return BatchRange(
        batch_index=batch_index,
        start_index=(batch_index - 1) * BATCH_SIZE + 1,
        end_index=batch_index * BATCH_SIZE,
    )


def validate_index_range(start_index: int, end_index: int) -> None:
    if start_index < 1 or end_index < start_index:
        raise SurveyValidationError(
            f"invalid question range [{start_index}, {end_index}]"
        )


def batches_in_range(start_index: int, end_index: int) -> list[int]:
    """1-based batch indices overlapping ``[start_index, end_index]``."""
    first = (start_index - 1) // BATCH_SIZE + 1
    last = (end_index - 1) // BATCH_SIZE + 1
    return list(range(first, last + 1))


def fixed_indices_in_range(start_index: int, end_index: int, fixed_count: int) -> list[int]:
    """Indices in ``[start, end]`` claimed by fixed questions (which sit at 1..N)."""
    return list(range(max(start_index, 1), min(end_index, fixed_count) + 1))


def ai_slots_needed(
    start_index: int,
    end_index: int,
    fixed_indices: Iterable[int],
    existing_indices: Iterable[int],
) -> list[int]:
    """Indices the model must fill: the range minus fixed and existing ones."""
    taken = set(fixed_indices) | set(existing_indices)
    return [i for i in range(start_index, end_index + 1) if i not in taken]


def _is_materialized(rng: BatchRange, question_indices: set[int]) -> bool:
    return all(i in question_indices for i in rng.indices)


# ---------------------------------------------------------------------------
# Decision
# ---------------------------------------------------------------------------

def decide(observation: Observation) -> Decision:
    """Derive the next actions for a session from a snapshot.  Pure."""
    answered = observation.answered_count
    target_reached = answered >= observation.report_target
    can_finalize = answered >= MIN_ANSWERS_FOR_REPORT

    if answered == 0:
        first = batch_range(1)
        if _is_materialized(first, observation.question_indices):
            return Decision(state="awaiting_answers")
        return Decision(state="awaiting_first_batch", batch_to_request=first)

    at_boundary = answered % BATCH_SIZE == 0
    if not at_boundary:
        return Decision(
            state="awaiting_answers",
            can_finalize=can_finalize,
            target_reached=target_reached,
        )

    finished = batch_range(answered // BATCH_SIZE)
    analysis = None
    if finished.batch_index not in observation.analysis_batch_indices:
        analysis = finished

    following = batch_range(finished.batch_index + 1)
    next_missing = not _is_materialized(following, observation.question_indices)
    batch = None
    if next_missing and (not target_reached or observation.continue_beyond_target):
        batch = following

    if analysis is not None or batch is not None:
        state: ControllerState = "batch_boundary"
    elif target_reached:
        state = "target_reached"
    else:
        state = "awaiting_answers"

    return Decision(
        state=state,
        analysis_to_request=analysis,
        batch_to_request=batch,
        can_finalize=can_finalize,
        can_continue_beyond_target=target_reached and next_missing,
        target_reached=target_reached,
    )


# ---------------------------------------------------------------------------
# Answer predicate
# ---------------------------------------------------------------------------

def is_unanswered(question_type: str, answer: StoredAnswer | None) -> bool:
    """True when the stored answer does not count as answered."""
    if answer is None:
        return True
    if question_type in ("text", "textarea"):
        return not answer.answer_text
    if question_type == "checkbox":
        return not answer.selected_options
    return answer.selected_option is None


# ---------------------------------------------------------------------------
# In-flight guard
# ---------------------------------------------------------------------------

class InFlightGuard:
    """Process-local set of in-flight ``(session, kind, batch_index)`` keys.

    Keeps a polling client from firing the same analysis or batch twice while
    the first call is still waiting on the model.  Not a distributed lock;
    the database unique constraints cover writers in other processes.
    """

    def __init__(self) -> None:
        self._held: set[tuple[str, str, int]] = set()

    def is_held(self, session_id: str, kind: str, batch_index: int) -> bool:
        return (session_id, kind, batch_index) in self._held

    @asynccontextmanager
    async def claim(self, session_id: str, kind: str, batch_index: int) -> AsyncIterator[bool]:
        """Yield ``True`` if the key was free (and is now held), else ``False``."""
        key = (session_id, kind, batch_index)
        if key in self._held:
            logger.debug("Skipping %s for batch %d of %s: already in flight", kind, batch_index, session_id)
            yield False
            return
        self._held.add(key)
        try:
            yield True
        finally:
            self._held.discard(key)
