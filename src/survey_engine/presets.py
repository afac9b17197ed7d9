"""PresetService — shareable survey configurations and their admin view.

A preset is addressed two ways:

  - ``slug``:        short public id; respondents start sessions from it
  - ``admin_token``: long secret returned once at creation; every management
                     operation (edit, dashboard, aggregate reports) takes it

The two authoring helpers (background text, exploration themes) also live
here: they are model calls made while an author fills in a preset, before
any preset row exists.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from survey_db.repository import SurveyRepository

from survey_engine import views
from survey_engine.constants import (
    AUTHORING_MAX_TOKENS,
    AUTHORING_TEMPERATURE,
    MAX_BACKGROUND_LENGTH,
    MAX_PURPOSE_LENGTH,
)
from survey_engine.errors import GenerationError, SurveyNotFoundError, SurveyValidationError
from survey_engine.interfaces import TextGenerator
from survey_engine.models.preset import (
    PresetCreate,
    PresetCreated,
    PresetDashboard,
    PresetInfo,
    PresetUpdate,
    SurveyReportInfo,
)
from survey_engine.parser import parse_string_field, parse_string_list
from survey_engine.phase import validate_report_target
from survey_engine.prompt.manager import PromptManager

logger = logging.getLogger(__name__)

# token_urlsafe(6) encodes 6 random bytes as 8 URL-safe characters.
_SLUG_BYTES = 6
_ADMIN_TOKEN_BYTES = 32
_SLUG_ATTEMPTS = 5


class PresetService:
    """Create, read and manage presets.

    Args:
        generator: the text-generation model (authoring helpers only)
        prompts: prompt renderer; defaults to the bundled templates
    """

    def __init__(self, generator: TextGenerator, prompts: PromptManager | None = None) -> None:
        self._generator = generator
        self._prompts = prompts or PromptManager()
        self._repo = SurveyRepository()

    # ------------------------------------------------------------------
    # Create / read / update
    # ------------------------------------------------------------------

    async def create_preset(self, db: AsyncSession, data: PresetCreate) -> PresetCreated:
        """Insert a preset and return it with its slug and admin token.

        The admin token is not retrievable afterwards.
        """
        validate_report_target(data.report_target)
        slug = await self._new_slug(db)
        admin_token = secrets.token_urlsafe(_ADMIN_TOKEN_BYTES)

        fields = data.model_dump(mode="json")
        preset = await self._repo.create_preset(db, slug=slug, admin_token=admin_token, **fields)
        logger.info("Created preset %s (%d fixed questions)", slug, len(data.fixed_questions))
        return PresetCreated(preset=views.preset_info(preset), slug=slug, admin_token=admin_token)

    async def get_public_preset(self, db: AsyncSession, slug: str) -> PresetInfo:
        preset = await self._repo.get_preset_by_slug(db, slug)
        if preset is None:
            raise SurveyNotFoundError(f"preset not found: {slug}")
        return views.preset_info(preset)

    async def update_preset(
        self, db: AsyncSession, admin_token: str, patch: PresetUpdate
    ) -> PresetInfo:
        """Apply only the fields the caller explicitly set.

        Sessions already created keep the configuration they copied.
        """
        preset = await self._load_by_token(db, admin_token)
        changes: dict[str, Any] = patch.model_dump(mode="json", exclude_unset=True)

        # Only notification_email and the optional texts may be cleared.
        for key in ("title", "purpose", "background_text", "exploration_themes",
                    "fixed_questions", "report_target"):
            if key in changes and changes[key] is None:
                raise SurveyValidationError(f"{key} cannot be null")
        if "report_target" in changes:
            validate_report_target(changes["report_target"])

        if changes:
            await self._repo.update_preset(db, preset, changes)
            logger.info("Updated preset %s: %s", preset.slug, sorted(changes))
        return views.preset_info(preset)

    # ------------------------------------------------------------------
    # Admin views
    # ------------------------------------------------------------------

    async def get_dashboard(self, db: AsyncSession, admin_token: str) -> PresetDashboard:
        """Preset settings, its sessions (newest first) and report history."""
        preset = await self._load_by_token(db, admin_token)
        sessions = await self._repo.list_preset_sessions(db, preset.id)
        ids = [s.id for s in sessions]
        questions = await self._repo.list_questions_for_sessions(db, ids)
        reports = await self._repo.list_latest_reports(db, ids)
        survey_reports = await self._repo.list_survey_reports(db, preset.id)
        participants = views.survey_participants(sessions, questions, reports)

        return PresetDashboard(
            preset=views.preset_info(preset),
            notification_email=preset.notification_email,
            sessions=[
                views.session_summary(s, questions.get(s.id, []), has_report=s.id in reports)
                for s in reversed(sessions)
            ],
            survey_reports=[views.survey_report_info(r, participants) for r in survey_reports],
        )

    async def list_survey_reports(self, db: AsyncSession, admin_token: str) -> list[SurveyReportInfo]:
        """Every aggregate report version, newest first.

        ``[U<n>-Q<m>]`` markers resolve against the current answers.
        """
        preset = await self._load_by_token(db, admin_token)
        rows = await self._repo.list_survey_reports(db, preset.id)
        if not rows:
            return []
        sessions = await self._repo.list_preset_sessions(db, preset.id)
        ids = [s.id for s in sessions]
        participants = views.survey_participants(
            sessions,
            await self._repo.list_questions_for_sessions(db, ids),
            await self._repo.list_latest_reports(db, ids),
        )
        return [views.survey_report_info(r, participants) for r in rows]

    # ------------------------------------------------------------------
    # Authoring helpers
    # ------------------------------------------------------------------

    async def generate_background(self, purpose: str, title: str | None = None) -> str:
        """Draft a short neutral background text for a purpose.

        Raises:
            SurveyValidationError: empty or oversized purpose
            GenerationError: the model failed or returned no usable text
        """
        purpose = self._check_purpose(purpose)
        text = await self._generator.generate(
            [{"role": "user", "content": self._prompts.render_background(purpose, title)}],
            temperature=AUTHORING_TEMPERATURE,
            max_tokens=AUTHORING_MAX_TOKENS,
        )
        background = parse_string_field(text, "backgroundText", "background_text")
        if background is None:
            logger.warning("Unparseable background text: %s", (text or "")[:500])
            raise GenerationError("model output did not contain a background text", raw=text)
        return background

    async def generate_exploration_themes(
        self, purpose: str, background_text: str | None = None
    ) -> list[str]:
        """Draft five macro-level themes to steer question generation."""
        purpose = self._check_purpose(purpose)
        if background_text and len(background_text) > MAX_BACKGROUND_LENGTH:
            raise SurveyValidationError(
                f"background_text must be at most {MAX_BACKGROUND_LENGTH} characters"
            )
        text = await self._generator.generate(
            [{"role": "user", "content": self._prompts.render_themes(purpose, background_text)}],
            temperature=AUTHORING_TEMPERATURE,
            max_tokens=AUTHORING_MAX_TOKENS,
        )
        themes = parse_string_list(text, "themes", "keyQuestions")
        if themes is None:
            logger.warning("Unparseable themes: %s", (text or "")[:500])
            raise GenerationError("model output did not contain any themes", raw=text)
        return themes

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _load_by_token(self, db: AsyncSession, admin_token: str) -> Any:
        if not admin_token:
            raise SurveyNotFoundError("preset not found")
        preset = await self._repo.get_preset_by_admin_token(db, admin_token)
        if preset is None:
            raise SurveyNotFoundError("preset not found")
        return preset

    async def _new_slug(self, db: AsyncSession) -> str:
        for _ in range(_SLUG_ATTEMPTS):
            slug = secrets.token_urlsafe(_SLUG_BYTES)
            if await self._repo.get_preset_by_slug(db, slug) is None:
                return slug
        raise RuntimeError("could not allocate a unique preset slug")

    @staticmethod
    def _check_purpose(purpose: str) -> str:
        purpose = (purpose or "").strip()
        if not purpose:
            raise SurveyValidationError("purpose is required")
        if len(purpose) > MAX_PURPOSE_LENGTH:
            raise SurveyValidationError(f"purpose must be at most {MAX_PURPOSE_LENGTH} characters")
        return purpose
