"""Converters from ORM rows to the SDK's public models.

API consumers only ever see these views; the storage encoding of answers is
decoded here and nowhere else.
"""

from __future__ import annotations

import uuid
from typing import Any

from survey_engine.citations import resolve_citations, resolve_survey_citations
from survey_engine.controller import is_unanswered
from survey_engine.errors import SurveyValidationError
from survey_engine.models.answer import AnswerValue, StoredAnswer, decode_answer
from survey_engine.models.preset import PresetInfo, SessionSummary, SurveyReportInfo
from survey_engine.models.question import FixedQuestionDef, QuestionRecord
from survey_engine.models.session import (
    AnalysisInfo,
    QuestionPayload,
    ReportInfo,
    SessionInfo,
)
from survey_engine.phase import profile_from_json
from survey_engine.prompt.manager import Participant, QAItem


def parse_uuid(value: str | uuid.UUID, what: str = "id") -> uuid.UUID:
    """Parse a caller-supplied id; malformed ids are validation failures."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise SurveyValidationError(f"{what} is not a valid UUID: {value!r}") from exc


# ---------------------------------------------------------------------------
# Questions & answers
# ---------------------------------------------------------------------------

def stored_answer(row: Any) -> StoredAnswer | None:
    if row is None:
        return None
    return StoredAnswer(
        selected_option=row.selected_option,
        free_text=row.free_text,
        selected_options=list(row.selected_options) if row.selected_options is not None else None,
        answer_text=row.answer_text,
    )


def is_answered(question: Any) -> bool:
    return not is_unanswered(question.question_type, stored_answer(question.answer))


def decoded_answer(question: Any) -> AnswerValue:
    return decode_answer(
        stored_answer(question.answer),
        question_type=question.question_type,
        option_count=len(question.options or []),
    )


def question_record(question: Any) -> QuestionRecord:
    return QuestionRecord(
        id=str(question.id),
        question_index=question.question_index,
        statement=question.statement,
        detail=question.detail or "",
        options=list(question.options or []),
        phase=question.phase,
        source=question.source,
        question_type=question.question_type,
        scale_config=question.scale_config,
    )


def question_payload(question: Any) -> QuestionPayload:
    answer = decoded_answer(question)
    return QuestionPayload(
        id=str(question.id),
        question_index=question.question_index,
        statement=question.statement,
        detail=question.detail or "",
        options=list(question.options or []),
        phase=question.phase,
        source=question.source,
        question_type=question.question_type,
        scale_config=question.scale_config,
        answer=answer,
        answered=is_answered(question),
    )


def qa_item(question: Any) -> QAItem:
    return QAItem.from_question(question_record(question), decoded_answer(question))


# ---------------------------------------------------------------------------
# Sessions, analyses, reports
# ---------------------------------------------------------------------------

def session_info(row: Any) -> SessionInfo:
    return SessionInfo(
        id=str(row.id),
        title=row.title,
        purpose=row.purpose,
        background_text=row.background_text or "",
        report_instructions=row.report_instructions,
        exploration_themes=list(row.exploration_themes or []),
        report_target=row.report_target,
        current_question_index=row.current_question_index,
        status=row.status,
        phase_profile=profile_from_json(row.phase_profile),
        preset_id=str(row.preset_id) if row.preset_id else None,
        created_at=row.created_at,
    )


def analysis_info(row: Any) -> AnalysisInfo:
    return AnalysisInfo(
        batch_index=row.batch_index,
        start_index=row.start_index,
        end_index=row.end_index,
        analysis_text=row.analysis_text,
        created_at=row.created_at,
    )


def report_info(row: Any, qa: list[QAItem] | None = None) -> ReportInfo:
    """Report view; ``qa`` resolves the ``[Q<n>]`` markers in the text."""
    return ReportInfo(
        session_id=str(row.session_id),
        version=row.version,
        report_text=row.report_text,
        created_at=row.created_at,
        citations=resolve_citations(row.report_text, qa) if qa is not None else [],
    )


def survey_participants(
    sessions: list[Any],
    questions_by_session: dict[Any, list[Any]],
    reports: dict[Any, Any],
) -> list[Participant]:
    """Respondents with at least one answer, numbered ``U<n>`` by creation order.

    ``sessions`` must be oldest first; sessions without answers keep their
    number but are left out.
    """
    out = []
    for number, session in enumerate(sessions, start=1):
        answered = [q for q in questions_by_session.get(session.id, []) if is_answered(q)]
        if not answered:
            continue
        personal = reports.get(session.id)
        out.append(Participant(
            user_number=number,
            qa=[qa_item(q) for q in answered],
            personal_report=personal.report_text if personal is not None else None,
        ))
    return out


def survey_report_info(row: Any, participants: list[Participant] | None = None) -> SurveyReportInfo:
    text = row.report_text or ""
    return SurveyReportInfo(
        id=str(row.id),
        preset_id=str(row.preset_id),
        version=row.version,
        status=row.status,
        report_text=text,
        custom_instructions=row.custom_instructions,
        created_at=row.created_at,
        citations=resolve_survey_citations(text, participants) if participants else [],
    )


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------

def fixed_question_defs(raw: list[dict] | None) -> list[FixedQuestionDef]:
    return [FixedQuestionDef.model_validate(item) for item in raw or []]


def preset_info(row: Any) -> PresetInfo:
    return PresetInfo(
        id=str(row.id),
        slug=row.slug,
        title=row.title,
        purpose=row.purpose,
        background_text=row.background_text or "",
        report_instructions=row.report_instructions,
        exploration_themes=list(row.exploration_themes or []),
        fixed_questions=fixed_question_defs(row.fixed_questions),
        report_target=row.report_target,
        og_title=row.og_title,
        og_description=row.og_description,
        created_at=row.created_at,
    )


def session_summary(row: Any, questions: list[Any], *, has_report: bool) -> SessionSummary:
    return SessionSummary(
        id=str(row.id),
        title=row.title,
        status=row.status,
        answered_count=sum(1 for q in questions if is_answered(q)),
        current_question_index=row.current_question_index,
        has_report=has_report,
        created_at=row.created_at,
    )
