"""ORM models for survey_db."""

from survey_db.models.base import Base
from survey_db.models.enums import QuestionSource, SessionStatus, SurveyReportStatus
from survey_db.models.preset import Preset
from survey_db.models.question import Answer, Question
from survey_db.models.report import Analysis, Report, SurveyReport
from survey_db.models.session import SurveySession

__all__ = [
    "Base",
    "QuestionSource",
    "SessionStatus",
    "SurveyReportStatus",
    "Preset",
    "Answer",
    "Question",
    "Analysis",
    "Report",
    "SurveyReport",
    "SurveySession",
]
