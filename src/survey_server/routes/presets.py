"""Public preset endpoints — create, open by slug, authoring helpers."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from survey_engine.constants import MAX_BACKGROUND_LENGTH, MAX_PURPOSE_LENGTH, MAX_PRESET_TITLE_LENGTH
from survey_engine.models.preset import PresetCreate, PresetCreated, PresetInfo
from survey_engine.presets import PresetService

from survey_server.dependencies import get_db, get_presets

router = APIRouter(tags=["presets"])


# ------------------------------------------------------------------
# Request / response models
# ------------------------------------------------------------------

class GenerateBackgroundRequest(BaseModel):
    purpose: str = Field(min_length=1, max_length=MAX_PURPOSE_LENGTH)
    title: Optional[str] = Field(default=None, max_length=MAX_PRESET_TITLE_LENGTH)


class GenerateBackgroundResponse(BaseModel):
    background_text: str


class GenerateThemesRequest(BaseModel):
    purpose: str = Field(min_length=1, max_length=MAX_PURPOSE_LENGTH)
    background_text: Optional[str] = Field(default=None, max_length=MAX_BACKGROUND_LENGTH)


class GenerateThemesResponse(BaseModel):
    themes: list[str]


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/presets", status_code=201)
async def create_preset(
    body: PresetCreate,
    db: AsyncSession = Depends(get_db),
    presets: PresetService = Depends(get_presets),
) -> PresetCreated:
    """Create a preset.  The admin token in the response is shown only once."""
    return await presets.create_preset(db, body)


@router.post("/presets/generate-background")
async def generate_background(
    body: GenerateBackgroundRequest,
    presets: PresetService = Depends(get_presets),
) -> GenerateBackgroundResponse:
    text = await presets.generate_background(body.purpose, body.title)
    return GenerateBackgroundResponse(background_text=text)


@router.post("/presets/generate-themes")
async def generate_themes(
    body: GenerateThemesRequest,
    presets: PresetService = Depends(get_presets),
) -> GenerateThemesResponse:
    themes = await presets.generate_exploration_themes(body.purpose, body.background_text)
    return GenerateThemesResponse(themes=themes)


@router.get("/presets/{slug}")
async def get_preset(
    slug: str,
    db: AsyncSession = Depends(get_db),
    presets: PresetService = Depends(get_presets),
) -> PresetInfo:
    """Public view of a preset; never includes the admin token."""
    return await presets.get_public_preset(db, slug)
