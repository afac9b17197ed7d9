"""survey_db — PostgreSQL persistence layer for survey sessions.

Provides the ORM models, the async engine factory, and the repository used
by the survey SDK and the FastAPI server.
"""

from survey_db.engine import dispose_engine, get_engine, get_session_factory
from survey_db.models.enums import SessionStatus, SurveyReportStatus
from survey_db.models.session import SurveySession
from survey_db.repository import SurveyRepository

__all__ = [
    "SurveySession",
    "SessionStatus",
    "SurveyReportStatus",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "SurveyRepository",
]
