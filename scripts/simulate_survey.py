#!/usr/bin/env python3
"""Simulate an adaptive survey session end-to-end with mocked DB and model.

Creates a preset (optionally with fixed questions), opens a session from it,
answers every generated question until the report target is reached, writes
the personal report and finally an aggregate report.  Every question, the
mock answer chosen, the analyses and the controller decisions are printed as
``rich`` tables.

By default answers are **randomised** (``--random``, on by default), so some
answers are free text and the phase of each batch can be followed across
runs.  Use ``--no-random`` to always pick the first option.

Usage::

    # Default run (target 15, random answers)
    python scripts/simulate_survey.py

    # Three fixed questions and a longer survey
    python scripts/simulate_survey.py --fixed 3 --target 25

    # Continue one batch beyond the target before finalizing
    python scripts/simulate_survey.py --beyond

    # Reproducible run
    python scripts/simulate_survey.py --seed 42
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import sys
from pathlib import Path
from unittest.mock import AsyncMock

from rich.console import Console
from rich.table import Table

# ---------------------------------------------------------------------------
# Ensure project root is on sys.path so we can import both the SDK and
# test mock infrastructure.
# ---------------------------------------------------------------------------
_SCRIPT_DIR = Path(__file__).resolve().parent
_REPO_ROOT = _SCRIPT_DIR.parent
sys.path.insert(0, str(_REPO_ROOT / "tests"))
sys.path.insert(0, str(_REPO_ROOT / "src"))

from helpers.mocks import FakeGenerator, MockRepository, RecordingNotifier  # noqa: E402

from survey_engine.models.answer import ChoiceAnswer, FreeTextAnswer  # noqa: E402
from survey_engine.models.preset import PresetCreate  # noqa: E402
from survey_engine.models.question import FixedQuestionDef  # noqa: E402
from survey_engine.models.session import AdvanceResult, QuestionPayload  # noqa: E402
from survey_engine.orchestrator import SurveyOrchestrator  # noqa: E402
from survey_engine.presets import PresetService  # noqa: E402
from survey_engine.prompt import PromptManager  # noqa: E402

# ---------------------------------------------------------------------------
# Constants for the simulation
# ---------------------------------------------------------------------------

PURPOSE = "Find out how the team really feels about remote work"
NOTIFY_EMAIL = "owner@teamsurvey.org"

_FIXED_POOL = [
    "I can focus better at home than in the office",
    "Meetings are more efficient online",
    "I feel connected to my colleagues",
    "My workspace at home is adequate",
    "I would accept a pay cut to keep working remotely",
]

_FREE_TEXT_POOL = [
    "It depends on the week",
    "Only for deep work",
    "Hard to say, my team changed recently",
]

# Probability that a random answer is free text instead of an option.
_FREE_TEXT_RATE = 0.15

console = Console()
_quiet = False


def _print(*args, **kwargs) -> None:
    """Print wrapper that respects the --quiet flag."""
    if not _quiet:
        console.print(*args, **kwargs)


def _rule(title: str) -> None:
    if not _quiet:
        console.rule(title)


# ---------------------------------------------------------------------------
# Mock answers
# ---------------------------------------------------------------------------

def mock_answer(question: QuestionPayload, rng: random.Random | None):
    if rng is None:
        return ChoiceAnswer(index=0)
    if question.question_type == "radio" and rng.random() < _FREE_TEXT_RATE:
        return FreeTextAnswer(text=rng.choice(_FREE_TEXT_POOL))
    return ChoiceAnswer(index=rng.randrange(len(question.options)))


def answer_label(question: QuestionPayload, answer) -> str:
    if isinstance(answer, FreeTextAnswer):
        return f"[italic]free text:[/] {answer.text}"
    return question.options[answer.index]


# ---------------------------------------------------------------------------
# Log helpers
# ---------------------------------------------------------------------------

def log_batch(questions: list[QuestionPayload], answers: dict[str, object]) -> None:
    table = Table(show_lines=False)
    table.add_column("Q", style="dim", width=4)
    table.add_column("Phase", width=12)
    table.add_column("Source", width=6)
    table.add_column("Statement", min_width=30)
    table.add_column("Answer", min_width=20)
    for q in questions:
        answer = answers.get(q.id)
        table.add_row(
            str(q.question_index),
            q.phase,
            q.source,
            q.statement,
            answer_label(q, answer) if answer is not None else "[dim]-[/]",
        )
    _print(table)


def log_advance(result: AdvanceResult) -> None:
    decision = result.decision
    _print(
        f"  [dim]decision:[/] {decision.state}"
        f"  can_finalize={decision.can_finalize}"
        f"  target_reached={decision.target_reached}"
    )
    if result.analysis is not None:
        _print(f"  [green]analysis {result.analysis.batch_index}:[/] {result.analysis.analysis_text}")
    if result.analysis_error:
        _print(f"  [yellow]analysis failed:[/] {result.analysis_error}")
    if result.batch_error:
        _print(f"  [red]batch failed:[/] {result.batch_error}")


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------

async def run_simulation(target: int, fixed: int, beyond: bool, rng: random.Random | None) -> bool:
    repo = MockRepository()
    db = AsyncMock()
    generator = FakeGenerator()
    notifier = RecordingNotifier()
    prompts = PromptManager()

    presets = PresetService(generator, prompts=prompts)
    presets._repo = repo
    orchestrator = SurveyOrchestrator(generator, prompts=prompts, notifier=notifier)
    orchestrator._repo = repo

    created = await presets.create_preset(db, PresetCreate(
        title="Remote work pulse",
        purpose=PURPOSE,
        report_target=target,
        notification_email=NOTIFY_EMAIL,
        fixed_questions=[
            FixedQuestionDef(statement=s, options=["Agree", "Neutral", "Disagree"])
            for s in _FIXED_POOL[:fixed]
        ],
    ))
    session = await orchestrator.create_session(db, preset_slug=created.slug)
    _rule(f"[bold]Session {session.id}")
    _print(f"  preset={created.slug} target={session.report_target} fixed={fixed}")

    batch = await orchestrator.generate_batch(db, session.id, 1, 5)
    questions = batch.questions
    continued = False

    while questions:
        _rule(f"Q{questions[0].question_index}-Q{questions[-1].question_index}")
        answers: dict[str, object] = {}
        result: AdvanceResult | None = None
        for q in questions:
            answers[q.id] = mock_answer(q, rng)
            result = await orchestrator.submit_answer(db, session.id, q.id, answers[q.id])
        log_batch(questions, answers)
        if result is None:
            break
        log_advance(result)

        if result.batch is None and beyond and not continued and result.decision.can_continue_beyond_target:
            _print("  [cyan]continuing beyond the target[/]")
            result = await orchestrator.advance(db, session.id, continue_beyond_target=True)
            continued = True
        questions = result.batch.questions if result.batch is not None else []

    _rule("[bold]Reports")
    report = await orchestrator.finalize(db, session.id)
    _print(f"  personal report v{report.version}: {report.report_text}")
    for citation in report.citations:
        _print(f"    {citation.marker} -> {citation.statement} ({citation.answer_text})")

    survey_report = await orchestrator.generate_survey_report(db, created.admin_token)
    _print(f"  survey report v{survey_report.version} [{survey_report.status}]: {survey_report.report_text}")
    _print(f"  notifications sent: {len(notifier.sent)}")

    state = await orchestrator.get_session_state(db, session.id)
    summary = Table(title="Model calls")
    summary.add_column("Kind")
    summary.add_column("Calls", justify="right")
    for kind in ("questions", "analysis", "report", "survey_report"):
        summary.add_row(kind, str(len(generator.calls_of(kind))))
    _print(summary)
    _print(
        f"  answered={state.answered_count} analyses={len(state.analyses)}"
        f" status={state.session.status}"
    )
    return state.session.status == "completed" and survey_report.status == "completed"


def main() -> None:
    global _quiet

    parser = argparse.ArgumentParser(
        description="Simulate an adaptive survey session with mocked DB and model.",
    )
    parser.add_argument("-t", "--target", type=int, default=15, help="Report target (multiple of 5)")
    parser.add_argument("-f", "--fixed", type=int, default=0, choices=range(0, len(_FIXED_POOL) + 1),
                        help="Number of fixed questions on the preset")
    parser.add_argument("--beyond", action="store_true", help="Continue one batch beyond the target")
    parser.add_argument(
        "--random",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Randomise mock answers (default: on). Use --no-random for deterministic mode.",
    )
    parser.add_argument("--seed", type=int, default=None, help="RNG seed for --random")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress table output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show SDK debug logs")
    args = parser.parse_args()

    _quiet = args.quiet
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    rng = random.Random(args.seed) if args.random else None
    ok = asyncio.run(run_simulation(args.target, args.fixed, args.beyond, rng))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
