"""SurveyOrchestrator — drives one respondent's adaptive survey session.

Wraps the pure batch controller with the I/O around it: repository reads,
model calls and repository writes.  Every public method takes the caller's
``AsyncSession`` and only flushes; the caller commits.

Flow of one answer::

    submit_answer ──► upsert answer ──► snapshot ──► decide()
                                                       │
                         ┌─────────────────────────────┤
                         ▼                             ▼
                analysis for batch k           questions for batch k+1
                         └──── model calls run concurrently ────┘
                                           │
                               persist sequentially, re-decide

Usage::

    orchestrator = SurveyOrchestrator(generator, notifier=notifier)

    info = await orchestrator.create_session(db, purpose="Decide on a career change")
    batch = await orchestrator.generate_batch(db, info.id, 1, 5)
    result = await orchestrator.submit_answer(
        db, info.id, batch.questions[0].id, ChoiceAnswer(index=0),
    )
    # ... after five answers result.analysis and result.batch are filled ...
    report = await orchestrator.finalize(db, info.id)
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from survey_db.models.enums import QuestionSource, SessionStatus, SurveyReportStatus
from survey_db.models.session import SurveySession
from survey_db.repository import SurveyRepository

from survey_engine import views
from survey_engine.constants import (
    ANALYSIS_MAX_TOKENS,
    ANALYSIS_TEMPERATURE,
    BATCH_SIZE,
    DEFAULT_REPORT_TARGET,
    DEFAULT_TITLE_LENGTH,
    MAX_BACKGROUND_LENGTH,
    MAX_PURPOSE_LENGTH,
    MAX_REPORT_INSTRUCTIONS_LENGTH,
    MAX_THEME_LENGTH,
    MAX_THEMES,
    MAX_TITLE_LENGTH,
    MIN_ANSWERS_FOR_REPORT,
    QUESTION_TEMPERATURE,
    REPORT_MAX_TOKENS,
    REPORT_TEMPERATURE,
    SURVEY_REPORT_MAX_TOKENS,
    SURVEY_REPORT_REASONING_EFFORT,
    VERSION_RETRY_LIMIT,
)
from survey_engine.controller import (
    BatchRange,
    InFlightGuard,
    Observation,
    ai_slots_needed,
    batch_range,
    batches_in_range,
    decide,
    fixed_indices_in_range,
    validate_index_range,
)
from survey_engine.errors import (
    GenerationError,
    SurveyConflictError,
    SurveyNotFoundError,
    SurveyValidationError,
)
from survey_engine.interfaces import Notifier, TextGenerator
from survey_engine.ledger import can_transition, next_version
from survey_engine.models.answer import AnswerValue, encode_answer, validate_answer
from survey_engine.models.preset import SurveyReportInfo
from survey_engine.models.question import FixedQuestionDef, GeneratedQuestion
from survey_engine.models.session import (
    AdvanceResult,
    AnalysisInfo,
    BatchResult,
    ReportInfo,
    SessionInfo,
    SessionState,
)
from survey_engine.parser import parse_generated_questions
from survey_engine.phase import (
    PhaseRange,
    build_phase_profile,
    phase_for_index,
    profile_from_json,
    profile_to_json,
    validate_report_target,
)
from survey_engine.prompt.manager import (
    AnalysisContext,
    FixedInBatch,
    PromptManager,
    QuestionGenerationContext,
    ReportContext,
    SurveyReportContext,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Raw model text is truncated to this many characters in log lines.
_RAW_LOG_LIMIT = 500


def _truncate(text: str | None) -> str:
    if not text:
        return ""
    return text if len(text) <= _RAW_LOG_LIMIT else text[:_RAW_LOG_LIMIT] + "..."


async def _nothing() -> None:
    return None


@dataclass
class _BatchPlan:
    """Everything the batch model call needs, computed before it runs."""

    start_index: int
    end_index: int
    fixed: list[int] = field(default_factory=list)
    slots: list[int] = field(default_factory=list)
    prompt: Optional[str] = None


@dataclass
class _AnalysisPlan:
    rng: BatchRange
    prompt: str


class SurveyOrchestrator:
    """Runs survey sessions: batches, analyses, answers and reports.

    Args:
        generator: the text-generation model
        prompts: prompt renderer; defaults to the bundled templates
        notifier: optional completion notifier for preset owners
        guard: in-flight guard; share one instance per process so concurrent
            requests for the same session see each other's claims
    """

    def __init__(
        self,
        generator: TextGenerator,
        prompts: PromptManager | None = None,
        notifier: Notifier | None = None,
        guard: InFlightGuard | None = None,
    ) -> None:
        self._generator = generator
        self._prompts = prompts or PromptManager()
        self._notifier = notifier
        self._guard = guard or InFlightGuard()
        self._repo = SurveyRepository()

    # ==================================================================
    # Sessions
    # ==================================================================

    async def create_session(
        self,
        db: AsyncSession,
        *,
        purpose: str | None = None,
        background_text: str | None = None,
        title: str | None = None,
        report_instructions: str | None = None,
        report_target: int | None = None,
        exploration_themes: list[str] | None = None,
        preset_slug: str | None = None,
    ) -> SessionInfo:
        """Create a session, optionally from a preset.

        Preset fields are copied onto the session; explicit arguments win.
        Fixed questions are materialized immediately at indices ``1..N``.

        Raises:
            SurveyNotFoundError: unknown ``preset_slug``
            SurveyValidationError: missing purpose, oversized fields, or a
                report target that is not a positive multiple of 5
        """
        preset = None
        if preset_slug is not None:
            preset = await self._repo.get_preset_by_slug(db, preset_slug)
            if preset is None:
                raise SurveyNotFoundError(f"preset not found: {preset_slug}")

        def pick(explicit: Any, attr: str, default: Any) -> Any:
            if explicit is not None:
                return explicit
            if preset is not None and getattr(preset, attr) is not None:
                return getattr(preset, attr)
            return default

        purpose = (pick(purpose, "purpose", "") or "").strip()
        background_text = pick(background_text, "background_text", "") or ""
        report_instructions = pick(report_instructions, "report_instructions", None)
        themes = [t.strip() for t in pick(exploration_themes, "exploration_themes", []) if t.strip()]
        target = validate_report_target(pick(report_target, "report_target", DEFAULT_REPORT_TARGET))
        title = (title or (preset.title if preset is not None else "") or purpose[:DEFAULT_TITLE_LENGTH]).strip()

        if not purpose:
            raise SurveyValidationError("purpose is required")
        if len(purpose) > MAX_PURPOSE_LENGTH:
            raise SurveyValidationError(f"purpose must be at most {MAX_PURPOSE_LENGTH} characters")
        if len(background_text) > MAX_BACKGROUND_LENGTH:
            raise SurveyValidationError(f"background_text must be at most {MAX_BACKGROUND_LENGTH} characters")
        if report_instructions and len(report_instructions) > MAX_REPORT_INSTRUCTIONS_LENGTH:
            raise SurveyValidationError(
                f"report_instructions must be at most {MAX_REPORT_INSTRUCTIONS_LENGTH} characters"
            )
        if len(title) > MAX_TITLE_LENGTH:
            title = title[:MAX_TITLE_LENGTH]
        if len(themes) > MAX_THEMES or any(len(t) > MAX_THEME_LENGTH for t in themes):
            raise SurveyValidationError(
                f"at most {MAX_THEMES} themes of at most {MAX_THEME_LENGTH} characters"
            )

        fixed_defs = views.fixed_question_defs(preset.fixed_questions) if preset is not None else []
        profile = build_phase_profile(target)

        row = await self._repo.create_session(
            db,
            title=title,
            purpose=purpose,
            background_text=background_text,
            report_instructions=report_instructions,
            exploration_themes=themes,
            fixed_questions=[d.model_dump(mode="json") for d in fixed_defs],
            phase_profile=profile_to_json(profile),
            report_target=target,
            current_question_index=0,
            status=SessionStatus.ACTIVE.value,
            preset_id=preset.id if preset is not None else None,
        )
        if fixed_defs:
            await self._repo.upsert_questions(
                db, self._fixed_rows(row, fixed_defs, range(1, len(fixed_defs) + 1), profile),
            )

        logger.info(
            "Created session %s (target=%d, fixed=%d, preset=%s)",
            row.id, target, len(fixed_defs), preset_slug,
        )
        return views.session_info(row)

    async def get_session_state(
        self,
        db: AsyncSession,
        session_id: str | uuid.UUID,
        *,
        continue_beyond_target: bool = False,
    ) -> SessionState:
        """Full snapshot: questions with decoded answers, analyses, latest report.

        ``decision`` tells the client what to offer next (finish, continue
        beyond the target) without triggering any work.
        """
        row = await self._load_session(db, session_id)
        questions, analyses = await self._snapshot(db, row)
        report = await self._repo.get_latest_report(db, row.id)
        observation = self._observe(row, questions, analyses, continue_beyond_target)
        return SessionState(
            session=views.session_info(row),
            questions=[views.question_payload(q) for q in questions],
            analyses=[views.analysis_info(a) for a in analyses],
            latest_report=(
                views.report_info(report, [views.qa_item(q) for q in questions])
                if report is not None else None
            ),
            answered_count=observation.answered_count,
            decision=decide(observation),
        )

    async def list_sessions(
        self, db: AsyncSession, *, limit: int = 20, offset: int = 0
    ) -> list[SessionInfo]:
        rows = await self._repo.list_sessions(db, limit=limit, offset=offset)
        return [views.session_info(r) for r in rows]

    # ==================================================================
    # Question batches
    # ==================================================================

    async def generate_batch(
        self,
        db: AsyncSession,
        session_id: str | uuid.UUID,
        start_index: int,
        end_index: int,
    ) -> BatchResult:
        """Materialize ``[start_index, end_index]``.

        Idempotent: indices that already exist are never regenerated, so a
        fully materialized range costs no model call.

        Claims every batch the range touches, the same keys ``advance`` uses,
        so an explicit request never races an answer crossing a boundary.

        Raises:
            SurveyValidationError: invalid range
            SurveyConflictError: a batch in the range is already being generated
            GenerationError: the model failed or returned unusable output;
                nothing generated is persisted (fixed rows may be)
        """
        validate_index_range(start_index, end_index)
        row = await self._load_session(db, session_id)
        sid = str(row.id)

        async with AsyncExitStack() as stack:
            for batch_index in batches_in_range(start_index, end_index):
                if not await stack.enter_async_context(self._guard.claim(sid, "batch", batch_index)):
                    raise SurveyConflictError(
                        f"questions for batch {batch_index} are already being generated"
                    )
            questions = await self._repo.list_questions_with_answers(db, row.id)
            plan = await self._plan_batch(db, row, questions, start_index, end_index)
            generated: list[GeneratedQuestion] = []
            if plan.slots:
                generated = await self._call_batch_model(plan)
            inserted = await self._persist_batch(db, row, plan, generated)
        return await self._batch_result(db, row, plan, inserted)

    async def _plan_batch(
        self,
        db: AsyncSession,
        row: SurveySession,
        questions: list[Any],
        start_index: int,
        end_index: int,
    ) -> _BatchPlan:
        """Insert missing fixed rows in range and build the model prompt."""
        defs = views.fixed_question_defs(row.fixed_questions)
        profile = profile_from_json(row.phase_profile)
        existing = {q.question_index for q in questions}

        fixed_idx = fixed_indices_in_range(start_index, end_index, len(defs))
        missing_fixed = [i for i in fixed_idx if i not in existing]
        inserted = []
        if missing_fixed:
            inserted = await self._repo.upsert_questions(
                db, self._fixed_rows(row, defs, missing_fixed, profile),
            )

        plan = _BatchPlan(
            start_index=start_index,
            end_index=end_index,
            fixed=sorted(q.question_index for q in inserted),
            slots=ai_slots_needed(start_index, end_index, fixed_idx, existing),
        )
        if not plan.slots:
            return plan

        ctx = QuestionGenerationContext(
            purpose=row.purpose,
            background_text=row.background_text or "",
            exploration_themes=list(row.exploration_themes or []),
            fixed_in_batch=[FixedInBatch(index=i, statement=defs[i - 1].statement) for i in fixed_idx],
            history=[views.qa_item(q) for q in questions],
            start_index=plan.slots[0],
            end_index=plan.slots[-1],
            count=len(plan.slots),
            phase=phase_for_index(plan.slots[0], profile),
        )
        plan.prompt = self._prompts.render_question_generation(ctx)
        return plan

    async def _call_batch_model(self, plan: _BatchPlan) -> list[GeneratedQuestion]:
        text = await self._generator.generate(
            [{"role": "user", "content": plan.prompt or ""}],
            temperature=QUESTION_TEMPERATURE,
        )
        items = parse_generated_questions(text)
        if items is None:
            logger.warning(
                "Unparseable question batch for Q%d-Q%d: %s",
                plan.slots[0], plan.slots[-1], _truncate(text),
            )
            raise GenerationError("model output could not be parsed into questions", raw=text)
        if len(items) < len(plan.slots):
            logger.warning(
                "Model returned %d questions, %d needed for Q%d-Q%d",
                len(items), len(plan.slots), plan.slots[0], plan.slots[-1],
            )
            raise GenerationError(
                f"model returned {len(items)} questions, {len(plan.slots)} needed", raw=text,
            )
        if len(items) > len(plan.slots):
            logger.debug("Discarding %d surplus generated questions", len(items) - len(plan.slots))
        return items[: len(plan.slots)]

    async def _persist_batch(
        self,
        db: AsyncSession,
        row: SurveySession,
        plan: _BatchPlan,
        generated: list[GeneratedQuestion],
    ) -> list[int]:
        """Write generated questions into their slots; return the inserted indices."""
        profile = profile_from_json(row.phase_profile)
        rows = [
            {
                "session_id": row.id,
                "question_index": slot,
                "statement": item.statement,
                "detail": item.detail,
                "options": list(item.options),
                "phase": phase_for_index(slot, profile),
                "source": QuestionSource.AI.value,
                "question_type": "radio",
                "scale_config": None,
            }
            for slot, item in zip(plan.slots, generated)
        ]
        inserted = await self._repo.upsert_questions(db, rows) if rows else []
        if len(inserted) < len(rows):
            logger.info(
                "%d of %d generated questions for session %s were already written",
                len(rows) - len(inserted), len(rows), row.id,
            )
        if plan.end_index > row.current_question_index:
            await self._repo.update_session(db, row, current_question_index=plan.end_index)
        return sorted(q.question_index for q in inserted)

    async def _batch_result(
        self, db: AsyncSession, row: SurveySession, plan: _BatchPlan, generated: list[int]
    ) -> BatchResult:
        questions = await self._repo.list_questions_with_answers(db, row.id)
        return BatchResult(
            start_index=plan.start_index,
            end_index=plan.end_index,
            generated=generated,
            fixed=plan.fixed,
            questions=[
                views.question_payload(q) for q in questions
                if plan.start_index <= q.question_index <= plan.end_index
            ],
        )

    @staticmethod
    def _fixed_rows(
        row: SurveySession,
        defs: list[FixedQuestionDef],
        indices: Any,
        profile: list[PhaseRange],
    ) -> list[dict[str, Any]]:
        rows = []
        for i in indices:
            d = defs[i - 1]
            rows.append({
                "session_id": row.id,
                "question_index": i,
                "statement": d.statement,
                "detail": d.detail,
                "options": list(d.options),
                "phase": phase_for_index(i, profile),
                "source": QuestionSource.FIXED.value,
                "question_type": d.question_type,
                "scale_config": d.scale_config.model_dump() if d.scale_config else None,
            })
        return rows

    # ==================================================================
    # Analyses
    # ==================================================================

    async def generate_analysis(
        self,
        db: AsyncSession,
        session_id: str | uuid.UUID,
        batch_index: int,
    ) -> AnalysisInfo:
        """Return the analysis of a finished batch, generating it if missing.

        Raises:
            SurveyValidationError: bad batch index, or the batch is not
                fully answered
            SurveyConflictError: the same analysis is already being generated
            GenerationError: the model failed
        """
        if isinstance(batch_index, bool) or not isinstance(batch_index, int):
            raise SurveyValidationError(f"batch_index must be an integer, got {batch_index!r}")
        rng = batch_range(batch_index)
        row = await self._load_session(db, session_id)

        existing = await self._repo.get_analysis(db, row.id, batch_index)
        if existing is not None:
            return views.analysis_info(existing)

        async with self._guard.claim(str(row.id), "analysis", batch_index) as claimed:
            if not claimed:
                raise SurveyConflictError(f"analysis for batch {batch_index} is already in progress")
            questions, analyses = await self._snapshot(db, row)
            plan = self._plan_analysis(row, questions, analyses, rng)
            if plan is None:
                raise SurveyValidationError(f"batch {batch_index} is not fully answered")
            text = await self._call_analysis_model(plan)
            analysis = await self._persist_analysis(db, row, rng, text)
        return views.analysis_info(analysis)

    def _plan_analysis(
        self,
        row: SurveySession,
        questions: list[Any],
        analyses: list[Any],
        rng: BatchRange,
    ) -> _AnalysisPlan | None:
        """Build the analysis prompt; ``None`` unless every question in range is answered."""
        in_range = [q for q in questions if rng.start_index <= q.question_index <= rng.end_index]
        if len(in_range) < BATCH_SIZE or not all(views.is_answered(q) for q in in_range):
            return None
        ctx = AnalysisContext(
            purpose=row.purpose,
            background_text=row.background_text or "",
            previous_analyses=[a.analysis_text for a in analyses if a.batch_index < rng.batch_index],
            batch=[views.qa_item(q) for q in in_range],
            start_index=rng.start_index,
            end_index=rng.end_index,
        )
        return _AnalysisPlan(rng=rng, prompt=self._prompts.render_analysis(ctx))

    async def _call_analysis_model(self, plan: _AnalysisPlan) -> str:
        text = await self._generator.generate(
            [{"role": "user", "content": plan.prompt}],
            temperature=ANALYSIS_TEMPERATURE,
            max_tokens=ANALYSIS_MAX_TOKENS,
        )
        text = (text or "").strip()
        if not text:
            raise GenerationError("model returned an empty analysis")
        return text

    async def _persist_analysis(
        self, db: AsyncSession, row: SurveySession, rng: BatchRange, text: str
    ) -> Any:
        inserted = await self._repo.insert_analysis(
            db,
            session_id=row.id,
            batch_index=rng.batch_index,
            start_index=rng.start_index,
            end_index=rng.end_index,
            analysis_text=text,
        )
        if inserted is not None:
            return inserted
        # Another writer got there first; its row is the analysis.
        logger.info("Analysis for batch %d of %s already written", rng.batch_index, row.id)
        winner = await self._repo.get_analysis(db, row.id, rng.batch_index)
        if winner is None:
            raise SurveyConflictError(f"analysis for batch {rng.batch_index} could not be written")
        return winner

    # ==================================================================
    # Answers & advancing
    # ==================================================================

    async def submit_answer(
        self,
        db: AsyncSession,
        session_id: str | uuid.UUID,
        question_id: str | uuid.UUID,
        answer: AnswerValue,
    ) -> AdvanceResult:
        """Record (or overwrite, or clear) an answer, then advance the session.

        Raises:
            SurveyValidationError: malformed ids or an answer that does not fit
                the question
            SurveyNotFoundError: unknown session, or the question belongs to
                another session
        """
        qid = views.parse_uuid(question_id, "question_id")
        row = await self._load_session(db, session_id)
        question = await self._repo.get_question(db, qid)
        if question is None or question.session_id != row.id:
            raise SurveyNotFoundError(f"question not found: {qid}")

        options = list(question.options or [])
        validate_answer(
            answer,
            question_type=question.question_type,
            options=options,
            scale_config=question.scale_config,
        )
        stored = encode_answer(answer, option_count=len(options))
        await self._repo.upsert_answer(
            db, question_id=question.id, session_id=row.id, payload=stored.model_dump(),
        )
        logger.info(
            "Session %s: Q%d answered (%s)", row.id, question.question_index, answer.kind,
        )
        return await self._advance(db, row, continue_beyond_target=False)

    async def advance(
        self,
        db: AsyncSession,
        session_id: str | uuid.UUID,
        *,
        continue_beyond_target: bool = False,
    ) -> AdvanceResult:
        """Observe the session and do whatever the controller asks for.

        Called after every answer; also called directly by the client to
        retry a failed batch or to continue beyond the report target.
        """
        row = await self._load_session(db, session_id)
        return await self._advance(db, row, continue_beyond_target=continue_beyond_target)

    async def _advance(
        self, db: AsyncSession, row: SurveySession, *, continue_beyond_target: bool
    ) -> AdvanceResult:
        questions, analyses = await self._snapshot(db, row)
        decision = decide(self._observe(row, questions, analyses, continue_beyond_target))
        result = AdvanceResult(decision=decision)
        if decision.analysis_to_request is None and decision.batch_to_request is None:
            return result

        sid = str(row.id)
        async with AsyncExitStack() as stack:
            analysis_plan: _AnalysisPlan | None = None
            batch_plan: _BatchPlan | None = None

            rng = decision.analysis_to_request
            if rng is not None and await stack.enter_async_context(
                self._guard.claim(sid, "analysis", rng.batch_index)
            ):
                analysis_plan = self._plan_analysis(row, questions, analyses, rng)
                if analysis_plan is None:
                    logger.debug("Batch %d of %s not fully answered; no analysis", rng.batch_index, sid)

            nxt = decision.batch_to_request
            if nxt is not None and await stack.enter_async_context(
                self._guard.claim(sid, "batch", nxt.batch_index)
            ):
                batch_plan = await self._plan_batch(db, row, questions, nxt.start_index, nxt.end_index)

            # Model calls are the only concurrent part; DB work stays sequential.
            analysis_out, batch_out = await asyncio.gather(
                self._call_analysis_model(analysis_plan) if analysis_plan else _nothing(),
                self._call_batch_model(batch_plan) if batch_plan and batch_plan.slots else _nothing(),
                return_exceptions=True,
            )

            if analysis_plan is not None:
                if isinstance(analysis_out, GenerationError):
                    logger.warning(
                        "Analysis for batch %d of %s failed: %s",
                        analysis_plan.rng.batch_index, sid, analysis_out,
                    )
                    result.analysis_error = str(analysis_out)
                elif isinstance(analysis_out, BaseException):
                    raise analysis_out
                else:
                    analysis = await self._persist_analysis(db, row, analysis_plan.rng, analysis_out)
                    result.analysis = views.analysis_info(analysis)

            if batch_plan is not None:
                if isinstance(batch_out, GenerationError):
                    logger.warning(
                        "Batch Q%d-Q%d of %s failed: %s",
                        batch_plan.start_index, batch_plan.end_index, sid, batch_out,
                    )
                    result.batch_error = str(batch_out)
                elif isinstance(batch_out, BaseException):
                    raise batch_out
                else:
                    inserted = await self._persist_batch(db, row, batch_plan, batch_out or [])
                    result.batch = await self._batch_result(db, row, batch_plan, inserted)

        if result.analysis is not None or result.batch is not None:
            questions, analyses = await self._snapshot(db, row)
            result.decision = decide(self._observe(row, questions, analyses, continue_beyond_target))
        return result

    # ==================================================================
    # Personal reports
    # ==================================================================

    async def finalize(self, db: AsyncSession, session_id: str | uuid.UUID) -> ReportInfo:
        """Write a new report version from the answers so far.

        May be called again later (after more answers); each call writes the
        next version.  Marks the session completed and notifies the preset
        owner, if one asked for it.

        Raises:
            SurveyValidationError: fewer than one full batch answered
            SurveyConflictError: a report is already being generated, or the
                version retry budget ran out
            GenerationError: the model failed; nothing is written
        """
        row = await self._load_session(db, session_id)
        async with self._guard.claim(str(row.id), "report", 0) as claimed:
            if not claimed:
                raise SurveyConflictError("a report for this session is already being generated")

            questions, analyses = await self._snapshot(db, row)
            answered = [q for q in questions if views.is_answered(q)]
            if len(answered) < MIN_ANSWERS_FOR_REPORT:
                raise SurveyValidationError(
                    f"at least {MIN_ANSWERS_FOR_REPORT} answers are needed for a report, "
                    f"got {len(answered)}"
                )

            ctx = ReportContext(
                purpose=row.purpose,
                background_text=row.background_text or "",
                report_instructions=row.report_instructions,
                exploration_themes=list(row.exploration_themes or []),
                analyses=[a.analysis_text for a in analyses],
                qa=[views.qa_item(q) for q in answered],
            )
            text = await self._generator.generate(
                [{"role": "user", "content": self._prompts.render_report(ctx)}],
                temperature=REPORT_TEMPERATURE,
                max_tokens=REPORT_MAX_TOKENS,
            )
            text = (text or "").strip()
            if not text:
                raise GenerationError("model returned an empty report")

            report = await self._insert_versioned(
                lambda version: self._repo.insert_report(
                    db, session_id=row.id, version=version, report_text=text,
                ),
                lambda: self._repo.latest_report_version(db, row.id),
                label="report",
            )
            newly_completed = row.status != SessionStatus.COMPLETED.value
            await self._repo.update_session(db, row, status=SessionStatus.COMPLETED)

        logger.info("Session %s: report v%d written (%d answers)", row.id, report.version, len(answered))
        if newly_completed:
            await self._notify_completion(db, row)
        return views.report_info(report, ctx.qa)

    async def get_latest_report(self, db: AsyncSession, session_id: str | uuid.UUID) -> ReportInfo:
        row = await self._load_session(db, session_id)
        report = await self._repo.get_latest_report(db, row.id)
        if report is None:
            raise SurveyNotFoundError(f"no report for session {row.id}")
        questions = await self._repo.list_questions_with_answers(db, row.id)
        return views.report_info(report, [views.qa_item(q) for q in questions])

    async def _notify_completion(self, db: AsyncSession, row: SurveySession) -> None:
        if self._notifier is None or row.preset_id is None:
            return
        preset = await self._repo.get_preset(db, row.preset_id)
        if preset is None or not preset.notification_email:
            return
        completed = await self._repo.count_completed_sessions(db, preset.id)
        try:
            await self._notifier.notify_completion(
                to=preset.notification_email,
                preset_title=preset.title,
                preset_slug=preset.slug,
                completed_count=completed,
            )
        except Exception:
            logger.warning("Completion notification for preset %s failed", preset.slug, exc_info=True)

    # ==================================================================
    # Aggregate reports
    # ==================================================================

    async def generate_survey_report(
        self,
        db: AsyncSession,
        admin_token: str,
        custom_instructions: str | None = None,
        *,
        on_started: Callable[[], Awaitable[None]] | None = None,
    ) -> SurveyReportInfo:
        """Write a new aggregate report version over every respondent of a preset.

        A ``generating`` row is written before the model call, then
        ``on_started`` is awaited; the server passes ``db.commit`` so the
        dashboard sees the in-progress version while the model runs.  Any
        model failure leaves the row ``failed`` and returns it instead of
        raising, so the status survives the request; callers check ``status``.

        Raises:
            SurveyNotFoundError: unknown admin token
            SurveyValidationError: no sessions, or no answers at all
            SurveyConflictError: version retry budget ran out
        """
        preset = await self._repo.get_preset_by_admin_token(db, admin_token)
        if preset is None:
            raise SurveyNotFoundError("preset not found")
        if custom_instructions is not None:
            custom_instructions = custom_instructions.strip() or None
        if custom_instructions and len(custom_instructions) > MAX_REPORT_INSTRUCTIONS_LENGTH:
            raise SurveyValidationError(
                f"custom_instructions must be at most {MAX_REPORT_INSTRUCTIONS_LENGTH} characters"
            )

        sessions = await self._repo.list_preset_sessions(db, preset.id)
        if not sessions:
            raise SurveyValidationError("no responses yet")
        ids = [s.id for s in sessions]
        participants = views.survey_participants(
            sessions,
            await self._repo.list_questions_for_sessions(db, ids),
            await self._repo.list_latest_reports(db, ids),
        )
        if not participants:
            raise SurveyValidationError("no answers recorded yet")

        prompt = self._prompts.render_survey_report(SurveyReportContext(
            purpose=preset.purpose,
            background_text=preset.background_text or "",
            report_instructions=preset.report_instructions,
            custom_instructions=custom_instructions,
            exploration_themes=list(preset.exploration_themes or []),
            fixed_questions=list(preset.fixed_questions or []),
            participants=participants,
        ))

        record = await self._insert_versioned(
            lambda version: self._repo.insert_survey_report(
                db, preset_id=preset.id, version=version, custom_instructions=custom_instructions,
            ),
            lambda: self._repo.latest_survey_report_version(db, preset.id),
            label="survey report",
        )
        logger.info(
            "Preset %s: survey report v%d generating (%d participants)",
            preset.slug, record.version, len(participants),
        )
        if on_started is not None:
            await on_started()

        try:
            text = await self._generator.generate(
                [{"role": "user", "content": prompt}],
                temperature=REPORT_TEMPERATURE,
                max_tokens=SURVEY_REPORT_MAX_TOKENS,
                reasoning_effort=SURVEY_REPORT_REASONING_EFFORT,
            )
            text = (text or "").strip()
            if not text:
                raise GenerationError("model returned an empty survey report")
        except Exception as exc:
            logger.error(
                "Preset %s: survey report v%d failed: %s",
                preset.slug, record.version, exc,
                exc_info=not isinstance(exc, GenerationError),
            )
            record = await self._settle_survey_report(db, record, SurveyReportStatus.FAILED)
            return views.survey_report_info(record)

        record = await self._settle_survey_report(
            db, record, SurveyReportStatus.COMPLETED, report_text=text,
        )
        return views.survey_report_info(record, participants)

    async def _settle_survey_report(
        self,
        db: AsyncSession,
        record: Any,
        status: SurveyReportStatus,
        report_text: str | None = None,
    ) -> Any:
        """Move a ``generating`` record to a terminal status."""
        current = SurveyReportStatus(record.status)
        if not can_transition(current, status):
            raise SurveyConflictError(
                f"survey report v{record.version} is already {current.value}"
            )
        return await self._repo.update_survey_report(db, record, status=status, report_text=report_text)

    # ==================================================================
    # Internals
    # ==================================================================

    async def _load_session(self, db: AsyncSession, session_id: str | uuid.UUID) -> SurveySession:
        sid = views.parse_uuid(session_id, "session_id")
        row = await self._repo.get_session(db, sid)
        if row is None:
            raise SurveyNotFoundError(f"session not found: {sid}")
        return row

    async def _snapshot(self, db: AsyncSession, row: SurveySession) -> tuple[list[Any], list[Any]]:
        questions = await self._repo.list_questions_with_answers(db, row.id)
        analyses = await self._repo.list_analyses(db, row.id)
        return questions, analyses

    @staticmethod
    def _observe(
        row: SurveySession,
        questions: list[Any],
        analyses: list[Any],
        continue_beyond_target: bool,
    ) -> Observation:
        return Observation(
            answered_count=sum(1 for q in questions if views.is_answered(q)),
            question_indices={q.question_index for q in questions},
            analysis_batch_indices={a.batch_index for a in analyses},
            report_target=row.report_target,
            continue_beyond_target=continue_beyond_target,
        )

    @staticmethod
    async def _insert_versioned(
        insert: Callable[[int], Awaitable[Optional[T]]],
        latest: Callable[[], Awaitable[Optional[int]]],
        *,
        label: str,
    ) -> T:
        """Insert at ``max + 1``, re-reading the max after each lost race."""
        for attempt in range(1, VERSION_RETRY_LIMIT + 1):
            version = next_version([await latest()])
            record = await insert(version)
            if record is not None:
                return record
            logger.info(
                "%s version %d already taken (attempt %d/%d)",
                label, version, attempt, VERSION_RETRY_LIMIT,
            )
        raise SurveyConflictError(
            f"could not allocate a {label} version after {VERSION_RETRY_LIMIT} attempts"
        )
