"""survey_engine — adaptive AI survey SDK.

Public API:
    SurveyOrchestrator — drives sessions: batches, analyses, answers, reports
    PresetService      — shareable survey configurations and their admin view
    PromptManager      — Jinja2 renderer for every model prompt
    OpenRouterGenerator — httpx-based TextGenerator for OpenRouter
    SmtpNotifier       — completion e-mails to preset owners

Pure building blocks:
    decide / Observation / Decision — batch lifecycle controller
    build_phase_profile / phase_for_index — phase schedule
    parse_generated_questions — defensive model-output parsing
    next_version — version ledger

Interfaces:
    TextGenerator — ABC for the text-generation model
    Notifier      — ABC for completion notifications
"""

from survey_engine.controller import Decision, InFlightGuard, Observation, decide
from survey_engine.errors import (
    GenerationError,
    ModelCallError,
    SurveyConflictError,
    SurveyNotFoundError,
    SurveyValidationError,
)
from survey_engine.interfaces import Notifier, TextGenerator
from survey_engine.ledger import next_version
from survey_engine.llm import OpenRouterGenerator
from survey_engine.models import (
    AdvanceResult,
    AnswerValue,
    BatchResult,
    ChoiceAnswer,
    FreeTextAnswer,
    MultiChoiceAnswer,
    PresetCreate,
    PresetUpdate,
    ScaleAnswer,
    SessionInfo,
    SessionState,
    TextAnswer,
    Unanswered,
)
from survey_engine.notifier import SmtpNotifier
from survey_engine.orchestrator import SurveyOrchestrator
from survey_engine.parser import parse_generated_questions
from survey_engine.phase import build_phase_profile, phase_for_index
from survey_engine.presets import PresetService
from survey_engine.prompt import PromptManager

__all__ = [
    # Services
    "SurveyOrchestrator",
    "PresetService",
    "PromptManager",
    "OpenRouterGenerator",
    "SmtpNotifier",
    # Controller & helpers
    "Decision",
    "InFlightGuard",
    "Observation",
    "decide",
    "build_phase_profile",
    "phase_for_index",
    "parse_generated_questions",
    "next_version",
    # Interfaces
    "TextGenerator",
    "Notifier",
    # Errors
    "SurveyValidationError",
    "SurveyNotFoundError",
    "SurveyConflictError",
    "GenerationError",
    "ModelCallError",
    # Models
    "AnswerValue",
    "ChoiceAnswer",
    "FreeTextAnswer",
    "MultiChoiceAnswer",
    "TextAnswer",
    "ScaleAnswer",
    "Unanswered",
    "SessionInfo",
    "SessionState",
    "BatchResult",
    "AdvanceResult",
    "PresetCreate",
    "PresetUpdate",
]
