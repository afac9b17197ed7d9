"""Session and step models — the contract between the orchestrator and API callers.

These models define what the orchestrator returns for each respondent
action.  They are intentionally decoupled from the ORM models in
``survey_db`` so that API consumers never see database internals (and never
see the storage encoding of free-text answers).

Step results:
  - BatchResult:   outcome of one question-batch generation
  - AdvanceResult: what happened at a batch boundary after an answer
  - SessionState:  full snapshot for rendering a session page
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from survey_engine.citations import Citation
from survey_engine.controller import Decision
from survey_engine.models.answer import AnswerValue, Unanswered
from survey_engine.phase import PhaseRange

SessionStatusValue = Literal["active", "completed", "paused"]


class SessionInfo(BaseModel):
    """Public view of a survey session."""

    id: str
    title: str
    purpose: str
    background_text: str = ""
    report_instructions: Optional[str] = None
    exploration_themes: list[str] = Field(default_factory=list)
    report_target: int
    current_question_index: int = 0
    status: SessionStatusValue = "active"
    phase_profile: list[PhaseRange] = Field(default_factory=list)
    preset_id: Optional[str] = None
    created_at: Optional[datetime] = None


class QuestionPayload(BaseModel):
    """A question with its decoded answer, ready for rendering."""

    id: str
    question_index: int
    statement: str
    detail: str = ""
    options: list[str]
    phase: str
    source: Literal["fixed", "ai"]
    question_type: str = "radio"
    scale_config: Optional[dict] = None
    answer: AnswerValue = Field(default_factory=Unanswered)
    answered: bool = False


class AnalysisInfo(BaseModel):
    batch_index: int
    start_index: int
    end_index: int
    analysis_text: str
    created_at: Optional[datetime] = None


class ReportInfo(BaseModel):
    session_id: str
    version: int
    report_text: str
    created_at: Optional[datetime] = None
    citations: list[Citation] = Field(default_factory=list)


class BatchResult(BaseModel):
    """Outcome of materializing one index range.

    ``generated`` lists the indices filled by the model, ``fixed`` the ones
    filled from author definitions.  Both empty means the range already
    existed (idempotent no-op).
    """

    start_index: int
    end_index: int
    generated: list[int] = Field(default_factory=list)
    fixed: list[int] = Field(default_factory=list)
    questions: list[QuestionPayload] = Field(default_factory=list)


class AdvanceResult(BaseModel):
    """What the orchestrator did after observing the session.

    A failed analysis is reported in ``analysis_error`` and never blocks the
    next batch; a failed batch is reported in ``batch_error`` and the caller
    is expected to retry.
    """

    decision: Decision
    analysis: Optional[AnalysisInfo] = None
    analysis_error: Optional[str] = None
    batch: Optional[BatchResult] = None
    batch_error: Optional[str] = None


class SessionState(BaseModel):
    session: SessionInfo
    questions: list[QuestionPayload]
    analyses: list[AnalysisInfo]
    latest_report: Optional[ReportInfo] = None
    answered_count: int
    decision: Decision
