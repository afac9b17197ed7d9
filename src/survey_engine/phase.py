"""Phase profile builder and phase policy.

A session's question-index space is split into fixed-size batches.  Each
batch carries a *phase* tag that steers how the model writes the questions
for that batch:

    batch:  1            2            3          4          5          6  ...
    phase:  exploration  exploration  exploration reframing deep-dive exploration ...

The first two batches always explore; afterwards the cycle
``exploration -> reframing -> deep-dive`` repeats.

Usage::

    profile = build_phase_profile(25)
    phase_for_index(12, profile)   # "exploration"
    phase_for_index(31, profile)   # wraps: same phase as Q6
    policy_text("reframing")       # directive embedded in the generation prompt
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

from survey_engine.constants import BATCH_SIZE, FALLBACK_PROFILE_SPAN
from survey_engine.errors import SurveyValidationError

Phase = Literal["exploration", "reframing", "deep-dive"]

PHASES: tuple[Phase, ...] = ("exploration", "reframing", "deep-dive")

# Batches 0 and 1 are always exploration.
_LEADING_EXPLORATION_BATCHES = 2
_PHASE_CYCLE: tuple[Phase, ...] = ("exploration", "reframing", "deep-dive")


class PhaseRange(BaseModel):
    """Inclusive ``[start, end]`` index range sharing one phase."""

    start: int
    end: int
    phase: Phase


def validate_report_target(report_target: int) -> int:
    """Reject report targets that are not positive multiples of the batch size.

    Called at the boundary (session / preset creation), never inside the
    builder itself.
    """
    if isinstance(report_target, bool) or not isinstance(report_target, int):
        raise SurveyValidationError(f"report_target must be an integer, got {report_target!r}")
    if report_target < BATCH_SIZE or report_target % BATCH_SIZE != 0:
        raise SurveyValidationError(
            f"report_target must be a positive multiple of {BATCH_SIZE}, got {report_target}"
        )
    return report_target


def build_phase_profile(report_target: int) -> list[PhaseRange]:
    """Partition ``[1, report_target]`` into batches and tag each with a phase."""
    ranges: list[PhaseRange] = []
    for i in range(report_target // BATCH_SIZE):
        if i < _LEADING_EXPLORATION_BATCHES:
            phase: Phase = "exploration"
        else:
            phase = _PHASE_CYCLE[(i - _LEADING_EXPLORATION_BATCHES) % len(_PHASE_CYCLE)]
        ranges.append(PhaseRange(
            start=i * BATCH_SIZE + 1,
            end=(i + 1) * BATCH_SIZE,
            phase=phase,
        ))
    return ranges


def phase_for_index(index: int, profile: list[PhaseRange]) -> Phase:
    """Return the phase for a 1-based question index.

    Indices past the profile's span (the respondent kept going beyond the
    target) wrap around the profile.  Never raises; unmatched indices fall
    back to ``exploration``.
    """
    max_end = profile[-1].end if profile else FALLBACK_PROFILE_SPAN
    normalized = ((index - 1) % max_end) + 1 if index > max_end else index

    for r in profile:
        if r.start <= normalized <= r.end:
            return r.phase
    return "exploration"


def profile_to_json(profile: list[PhaseRange]) -> list[dict]:
    """Serialize a profile for the session's JSONB column."""
    return [r.model_dump() for r in profile]


def profile_from_json(raw: list[dict] | dict | None) -> list[PhaseRange]:
    """Deserialize a stored profile.

    Accepts both the bare list and the ``{"ranges": [...]}`` wrapper written
    by older clients.
    """
    if raw is None:
        return []
    if isinstance(raw, dict):
        raw = raw.get("ranges") or []
    return [PhaseRange.model_validate(r) for r in raw]


# ---------------------------------------------------------------------------
# Phase policy
# ---------------------------------------------------------------------------

_EXPLORATION_POLICY = """[Current phase: EXPLORATION]
The goal of this phase is to cover, as broadly as possible, the themes of the
respondent's purpose and background that have NOT been asked about yet.

1. If a theme needed for the respondent's purpose has not been touched at all, prioritise it.
2. Use meta-statements that ask about priorities between themes to learn what matters most and how strongly.
3. Gauge how strongly the respondent cares about each theme.

Keep the big picture:
- Do not get dragged along by the most recent answers; keep the overall purpose balanced.
- Step back and ask: "what else must be asked to serve this purpose?"
- Focus on widening the range of themes."""

_REFRAMING_POLICY = """[Current phase: REFRAMING]
The goal of this phase is to revisit themes that were already covered from a
DIFFERENT angle, so the respondent's stance is understood from several sides.

Ways to shift the viewpoint:
1. Change the subject or scope: whole <-> individual, organisation <-> person, self <-> others <-> society.
2. Change the timeframe: past -> present -> future, short term <-> long term.
3. Change the condition: ideal <-> reality <-> under constraints, normal times <-> emergencies.
4. Change the role: participant <-> bystander, provider <-> beneficiary.

Separate concepts to understand more deeply:
- Fact vs ideal: ask separately "how is it now" and "how should it be".
- Principle vs degree: ask separately "the underlying view" and "to what extent".
- Goal vs means: ask separately "what is it for" and "how to do it".
- Problem vs task vs solution: distinguish the current problem, the task to tackle, and concrete measures.

Why this phase matters:
- Looking at the same theme from another angle reveals sides the respondent had not noticed.
- Multiple angles give a more three-dimensional, comprehensive understanding."""

_DEEP_DIVE_POLICY = """[Current phase: DEEP-DIVE]
The goal of this phase is to reach a deeper understanding of the themes that
surfaced during exploration.

Directions for digging deeper:
1. Explore conditional branches: "on this theme, what about in this case?"
2. Draw out the reasons and values behind surface-level answers ("why do you think so?").
3. Where answers seem to contradict each other, clarify the boundary or condition between them.

Always gain new information:
- Asking again what has already been asked is pointless.
- For every statement ask: "will this yield new information, insight, or understanding?"
- Aim to surface aspects the respondent had not noticed themselves."""

_POLICIES: dict[str, str] = {
    "exploration": _EXPLORATION_POLICY,
    "reframing": _REFRAMING_POLICY,
    "deep-dive": _DEEP_DIVE_POLICY,
}


def policy_text(phase: Phase) -> str:
    """Return the behavioural directive embedded verbatim in generation prompts."""
    return _POLICIES.get(phase, _DEEP_DIVE_POLICY)
