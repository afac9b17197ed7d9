"""Preset and aggregate-report models.

A preset is a shareable survey configuration: respondents open it by slug,
the author manages it through a secret admin token that is returned exactly
once, at creation.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, BaseModel, EmailStr, Field

from survey_engine.citations import Citation
from survey_engine.constants import (
    DEFAULT_REPORT_TARGET,
    MAX_BACKGROUND_LENGTH,
    MAX_FIXED_QUESTIONS,
    MAX_PRESET_TITLE_LENGTH,
    MAX_PURPOSE_LENGTH,
    MAX_REPORT_INSTRUCTIONS_LENGTH,
    MAX_THEME_LENGTH,
    MAX_THEMES,
)
from survey_engine.models.question import FixedQuestionDef

SurveyReportStatusValue = Literal["generating", "completed", "failed"]


def _check_themes(themes: list[str]) -> list[str]:
    for theme in themes:
        if len(theme) > MAX_THEME_LENGTH:
            raise ValueError(f"themes must be at most {MAX_THEME_LENGTH} characters")
    return [t.strip() for t in themes if t.strip()]


ThemeList = Annotated[list[str], AfterValidator(_check_themes)]


class PresetCreate(BaseModel):
    title: str = Field(min_length=1, max_length=MAX_PRESET_TITLE_LENGTH)
    purpose: str = Field(min_length=1, max_length=MAX_PURPOSE_LENGTH)
    background_text: str = Field(default="", max_length=MAX_BACKGROUND_LENGTH)
    report_instructions: Optional[str] = Field(default=None, max_length=MAX_REPORT_INSTRUCTIONS_LENGTH)
    exploration_themes: ThemeList = Field(default_factory=list, max_length=MAX_THEMES)
    fixed_questions: list[FixedQuestionDef] = Field(default_factory=list, max_length=MAX_FIXED_QUESTIONS)
    report_target: int = DEFAULT_REPORT_TARGET
    og_title: Optional[str] = Field(default=None, max_length=MAX_PRESET_TITLE_LENGTH)
    og_description: Optional[str] = Field(default=None, max_length=500)
    notification_email: Optional[EmailStr] = None


class PresetUpdate(BaseModel):
    """Partial update; only fields that were explicitly set are applied."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=MAX_PRESET_TITLE_LENGTH)
    purpose: Optional[str] = Field(default=None, min_length=1, max_length=MAX_PURPOSE_LENGTH)
    background_text: Optional[str] = Field(default=None, max_length=MAX_BACKGROUND_LENGTH)
    report_instructions: Optional[str] = Field(default=None, max_length=MAX_REPORT_INSTRUCTIONS_LENGTH)
    exploration_themes: Optional[ThemeList] = Field(default=None, max_length=MAX_THEMES)
    fixed_questions: Optional[list[FixedQuestionDef]] = Field(default=None, max_length=MAX_FIXED_QUESTIONS)
    report_target: Optional[int] = None
    og_title: Optional[str] = Field(default=None, max_length=MAX_PRESET_TITLE_LENGTH)
    og_description: Optional[str] = Field(default=None, max_length=500)
    # Explicit null clears the address.
    notification_email: Optional[EmailStr] = None


class PresetInfo(BaseModel):
    """Public view of a preset (never includes the admin token)."""

    id: str
    slug: str
    title: str
    purpose: str
    background_text: str = ""
    report_instructions: Optional[str] = None
    exploration_themes: list[str] = Field(default_factory=list)
    fixed_questions: list[FixedQuestionDef] = Field(default_factory=list)
    report_target: int
    og_title: Optional[str] = None
    og_description: Optional[str] = None
    created_at: Optional[datetime] = None


class PresetCreated(BaseModel):
    """Returned once at creation; the admin token is not retrievable later."""

    preset: PresetInfo
    slug: str
    admin_token: str


class SessionSummary(BaseModel):
    id: str
    title: str
    status: str
    answered_count: int
    current_question_index: int
    has_report: bool
    created_at: Optional[datetime] = None


class SurveyReportInfo(BaseModel):
    id: str
    preset_id: str
    version: int
    status: SurveyReportStatusValue
    report_text: str = ""
    custom_instructions: Optional[str] = None
    created_at: Optional[datetime] = None
    citations: list[Citation] = Field(default_factory=list)


class PresetDashboard(BaseModel):
    preset: PresetInfo
    notification_email: Optional[str] = None
    sessions: list[SessionSummary]
    survey_reports: list[SurveyReportInfo]
