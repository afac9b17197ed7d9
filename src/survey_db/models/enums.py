"""Database-level enumerations for survey records."""

import enum


class SessionStatus(str, enum.Enum):
    """Lifecycle states for a survey session.

    Transitions:
        active -> completed  (a report version was written)
        active -> paused     (respondent left; may resume)
        paused -> active
    A completed session still accepts answers; each finalization writes a
    new report version.
    """

    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"


class QuestionSource(str, enum.Enum):
    """Who wrote a question: the preset author or the model."""

    FIXED = "fixed"
    AI = "ai"


class SurveyReportStatus(str, enum.Enum):
    """Lifecycle of one aggregate report attempt.

    Transitions:
        generating -> completed  (model returned text)
        generating -> failed     (model call raised)
    """

    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not SurveyReportStatus.GENERATING
