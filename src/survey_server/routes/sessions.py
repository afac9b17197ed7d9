"""Session endpoints — create, list, get state, advance.

Sessions are anonymous: the session id itself is the respondent's handle.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.constants import (
    MAX_BACKGROUND_LENGTH,
    MAX_PURPOSE_LENGTH,
    MAX_REPORT_INSTRUCTIONS_LENGTH,
    MAX_THEMES,
    MAX_TITLE_LENGTH,
)
from survey_engine.models.session import AdvanceResult, SessionInfo, SessionState
from survey_engine.orchestrator import SurveyOrchestrator

from survey_server.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from survey_server.dependencies import get_db, get_orchestrator

router = APIRouter(tags=["sessions"])


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------

class CreateSessionRequest(BaseModel):
    """Body for POST /sessions.

    With ``preset_slug`` every other field is optional and overrides the
    preset's value; without it ``purpose`` is required.
    """
    purpose: Optional[str] = Field(default=None, max_length=MAX_PURPOSE_LENGTH)
    background_text: Optional[str] = Field(default=None, max_length=MAX_BACKGROUND_LENGTH)
    title: Optional[str] = Field(default=None, max_length=MAX_TITLE_LENGTH)
    report_instructions: Optional[str] = Field(default=None, max_length=MAX_REPORT_INSTRUCTIONS_LENGTH)
    report_target: Optional[int] = None
    exploration_themes: Optional[list[str]] = Field(default=None, max_length=MAX_THEMES)
    preset_slug: Optional[str] = None


class AdvanceRequest(BaseModel):
    """Body for POST /sessions/{session_id}/advance."""
    continue_beyond_target: bool = False


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/sessions", status_code=201)
async def create_session(
    body: CreateSessionRequest,
    db: AsyncSession = Depends(get_db),
    orchestrator: SurveyOrchestrator = Depends(get_orchestrator),
) -> SessionInfo:
    """Create a session.  Fixed questions of a preset are materialized at once."""
    return await orchestrator.create_session(db, **body.model_dump())


@router.get("/sessions")
async def list_sessions(
    db: AsyncSession = Depends(get_db),
    orchestrator: SurveyOrchestrator = Depends(get_orchestrator),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
) -> list[SessionInfo]:
    """List sessions, most recent first."""
    return await orchestrator.list_sessions(db, limit=limit, offset=offset)


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    orchestrator: SurveyOrchestrator = Depends(get_orchestrator),
) -> SessionState:
    """Session info, questions with answers, analyses and the latest report.

    ``decision`` tells the client whether to show the finish button and the
    "continue beyond target" button.
    """
    return await orchestrator.get_session_state(db, session_id)


@router.post("/sessions/{session_id}/advance")
async def advance(
    session_id: str,
    body: AdvanceRequest,
    db: AsyncSession = Depends(get_db),
    orchestrator: SurveyOrchestrator = Depends(get_orchestrator),
) -> AdvanceResult:
    """Run whatever the session needs next.

    Used to retry a failed batch, and with ``continue_beyond_target`` to
    get one more batch after the report target was reached.
    """
    return await orchestrator.advance(
        db, session_id, continue_beyond_target=body.continue_beyond_target,
    )
