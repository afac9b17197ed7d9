"""Prompt rendering for the model tasks.

Provides ``PromptManager``, a Jinja2-based template engine that renders typed
contexts into model-ready prompt strings, and ``format_answer_text``, the
single place where an answer becomes the label the model reads.
"""

from survey_engine.prompt.manager import (
    AnalysisContext,
    Participant,
    PromptManager,
    QAItem,
    QuestionGenerationContext,
    ReportContext,
    SurveyReportContext,
    format_answer_text,
)

__all__ = [
    "AnalysisContext",
    "Participant",
    "PromptManager",
    "QAItem",
    "QuestionGenerationContext",
    "ReportContext",
    "SurveyReportContext",
    "format_answer_text",
]
