"""Personal report endpoints — finalize and fetch the latest version."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.models.session import ReportInfo
from survey_engine.orchestrator import SurveyOrchestrator

from survey_server.dependencies import get_db, get_orchestrator

router = APIRouter(tags=["reports"])


@router.post("/sessions/{session_id}/reports", status_code=201)
async def create_report(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    orchestrator: SurveyOrchestrator = Depends(get_orchestrator),
) -> ReportInfo:
    """Write the next report version and mark the session completed.

    Needs at least one full batch of answers (400 otherwise).
    """
    return await orchestrator.finalize(db, session_id)


@router.get("/sessions/{session_id}/reports/latest")
async def get_latest_report(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    orchestrator: SurveyOrchestrator = Depends(get_orchestrator),
) -> ReportInfo:
    return await orchestrator.get_latest_report(db, session_id)
