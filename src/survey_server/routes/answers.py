"""Answer endpoint — record an answer and advance the session."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.models.answer import AnswerValue
from survey_engine.models.session import AdvanceResult
from survey_engine.orchestrator import SurveyOrchestrator

from survey_server.dependencies import get_db, get_orchestrator

router = APIRouter(tags=["answers"])


class SubmitAnswerRequest(BaseModel):
    """Body for POST /sessions/{session_id}/answers.

    ``answer`` is tagged by ``kind``, e.g. ``{"kind": "choice", "index": 0}``
    or ``{"kind": "free_text", "text": "..."}``; ``{"kind": "unanswered"}``
    clears a previous answer.
    """
    question_id: str
    answer: AnswerValue


@router.post("/sessions/{session_id}/answers")
async def submit_answer(
    session_id: str,
    body: SubmitAnswerRequest,
    db: AsyncSession = Depends(get_db),
    orchestrator: SurveyOrchestrator = Depends(get_orchestrator),
) -> AdvanceResult:
    """Store the answer, then run the batch boundary work if one was crossed.

    A failed analysis or batch does not fail the request: see
    ``analysis_error`` and ``batch_error`` in the response.
    """
    return await orchestrator.submit_answer(db, session_id, body.question_id, body.answer)
