"""Pydantic models for the survey SDK."""

from survey_engine.models.answer import (
    AnswerValue,
    ChoiceAnswer,
    FreeTextAnswer,
    MultiChoiceAnswer,
    ScaleAnswer,
    StoredAnswer,
    TextAnswer,
    Unanswered,
)
from survey_engine.models.question import (
    FixedQuestionDef,
    GeneratedQuestion,
    QuestionRecord,
    ScaleConfig,
)
from survey_engine.models.preset import (
    PresetCreate,
    PresetCreated,
    PresetDashboard,
    PresetInfo,
    PresetUpdate,
    SessionSummary,
    SurveyReportInfo,
)
from survey_engine.models.session import (
    AdvanceResult,
    AnalysisInfo,
    BatchResult,
    QuestionPayload,
    ReportInfo,
    SessionInfo,
    SessionState,
)

__all__ = [
    "AnswerValue",
    "ChoiceAnswer",
    "FreeTextAnswer",
    "MultiChoiceAnswer",
    "ScaleAnswer",
    "StoredAnswer",
    "TextAnswer",
    "Unanswered",
    "FixedQuestionDef",
    "GeneratedQuestion",
    "QuestionRecord",
    "ScaleConfig",
    "PresetCreate",
    "PresetCreated",
    "PresetDashboard",
    "PresetInfo",
    "PresetUpdate",
    "SessionSummary",
    "SurveyReportInfo",
    "AdvanceResult",
    "AnalysisInfo",
    "BatchResult",
    "QuestionPayload",
    "ReportInfo",
    "SessionInfo",
    "SessionState",
]
