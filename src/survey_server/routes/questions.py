"""Question batch endpoint — materialize an explicit index range."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.models.session import BatchResult
from survey_engine.orchestrator import SurveyOrchestrator

from survey_server.dependencies import get_db, get_orchestrator

router = APIRouter(tags=["questions"])


class GenerateQuestionsRequest(BaseModel):
    """Body for POST /sessions/{session_id}/questions/generate."""
    start_index: int = Field(ge=1)
    end_index: int = Field(ge=1)


@router.post("/sessions/{session_id}/questions/generate")
async def generate_questions(
    session_id: str,
    body: GenerateQuestionsRequest,
    db: AsyncSession = Depends(get_db),
    orchestrator: SurveyOrchestrator = Depends(get_orchestrator),
) -> BatchResult:
    """Generate the missing questions in ``[start_index, end_index]``.

    Existing indices are kept as they are; calling this twice for the same
    range costs one model call.  Returns 409 while any batch in the range
    is already being generated, and 502 if the model output is unusable,
    in which case nothing generated was stored.
    """
    return await orchestrator.generate_batch(db, session_id, body.start_index, body.end_index)
