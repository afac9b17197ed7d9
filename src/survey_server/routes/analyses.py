"""Analysis endpoint — interim reflection on one finished batch."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.models.session import AnalysisInfo
from survey_engine.orchestrator import SurveyOrchestrator

from survey_server.dependencies import get_db, get_orchestrator

router = APIRouter(tags=["analyses"])


class GenerateAnalysisRequest(BaseModel):
    """Body for POST /sessions/{session_id}/analyses."""
    batch_index: int


@router.post("/sessions/{session_id}/analyses")
async def generate_analysis(
    session_id: str,
    body: GenerateAnalysisRequest,
    db: AsyncSession = Depends(get_db),
    orchestrator: SurveyOrchestrator = Depends(get_orchestrator),
) -> AnalysisInfo:
    """Return the batch's analysis, generating it first if needed.

    400 if the batch is not fully answered, 502 if the model fails.
    """
    return await orchestrator.generate_analysis(db, session_id, body.batch_index)
