"""Preset admin endpoints — addressed by the secret admin token.

The token in the path is the only credential: anyone holding it can edit
the preset and read every response.  Handlers never log it.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.constants import MAX_REPORT_INSTRUCTIONS_LENGTH
from survey_engine.models.preset import PresetDashboard, PresetInfo, PresetUpdate, SurveyReportInfo
from survey_engine.orchestrator import SurveyOrchestrator
from survey_engine.presets import PresetService

from survey_server.dependencies import get_db, get_orchestrator, get_presets

router = APIRouter(prefix="/admin", tags=["admin"])


class SurveyReportRequest(BaseModel):
    """Body for POST /admin/{token}/survey-reports."""
    custom_instructions: Optional[str] = Field(default=None, max_length=MAX_REPORT_INSTRUCTIONS_LENGTH)


@router.get("/{token}")
async def get_dashboard(
    token: str,
    db: AsyncSession = Depends(get_db),
    presets: PresetService = Depends(get_presets),
) -> PresetDashboard:
    """Preset settings, its sessions and its aggregate report history."""
    return await presets.get_dashboard(db, token)


@router.patch("/{token}")
async def update_preset(
    token: str,
    body: PresetUpdate,
    db: AsyncSession = Depends(get_db),
    presets: PresetService = Depends(get_presets),
) -> PresetInfo:
    """Partial update: only fields present in the body change."""
    return await presets.update_preset(db, token, body)


@router.get("/{token}/survey-reports")
async def list_survey_reports(
    token: str,
    db: AsyncSession = Depends(get_db),
    presets: PresetService = Depends(get_presets),
) -> list[SurveyReportInfo]:
    """Every aggregate report version, newest first."""
    return await presets.list_survey_reports(db, token)


@router.post(
    "/{token}/survey-reports",
    status_code=201,
    responses={502: {"model": SurveyReportInfo, "description": "Model failed; report marked failed"}},
)
async def create_survey_report(
    token: str,
    body: SurveyReportRequest,
    db: AsyncSession = Depends(get_db),
    orchestrator: SurveyOrchestrator = Depends(get_orchestrator),
):
    """Generate the next aggregate report over every respondent.

    The ``generating`` version is committed before the model call so the
    dashboard can show it in progress.  A model failure still stores the
    version as ``failed`` and answers 502 with that record.
    """
    report = await orchestrator.generate_survey_report(
        db, token, body.custom_instructions, on_started=db.commit,
    )
    if report.status == "failed":
        return JSONResponse(status_code=502, content=report.model_dump(mode="json"))
    return report
