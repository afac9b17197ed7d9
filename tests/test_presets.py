"""PresetService tests — creation, admin access, partial updates and authoring helpers."""

import pytest
from pydantic import ValidationError

from helpers.mocks import FakeGenerator
from survey_engine.errors import GenerationError, SurveyNotFoundError, SurveyValidationError
from survey_engine.models.answer import ChoiceAnswer
from survey_engine.models.preset import PresetCreate, PresetUpdate
from survey_engine.models.question import FixedQuestionDef
from survey_engine.presets import PresetService


def _create(**overrides):
    data = {"title": "Team survey", "purpose": "How the team sees remote work"}
    data.update(overrides)
    return PresetCreate(**data)


class TestCreatePreset:

    @pytest.mark.asyncio
    async def test_slug_and_token(self, presets, mock_db, mock_repo):
        created = await presets.create_preset(mock_db, _create(notification_email="owner@teamsurvey.org"))

        assert len(created.slug) == 8
        assert len(created.admin_token) >= 40
        assert created.preset.slug == created.slug
        assert "admin_token" not in created.preset.model_dump(), "public view never leaks the token"
        row = next(iter(mock_repo.presets.values()))
        assert row.notification_email == "owner@teamsurvey.org"

    @pytest.mark.asyncio
    async def test_slugs_are_unique(self, presets, mock_db):
        slugs = {(await presets.create_preset(mock_db, _create())).slug for _ in range(5)}
        assert len(slugs) == 5

    @pytest.mark.asyncio
    async def test_invalid_target(self, presets, mock_db):
        with pytest.raises(SurveyValidationError):
            await presets.create_preset(mock_db, _create(report_target=7))

    def test_model_validation(self):
        with pytest.raises(ValidationError):
            _create(title="")
        with pytest.raises(ValidationError):
            _create(notification_email="not-an-address")
        with pytest.raises(ValidationError):
            FixedQuestionDef(statement="Only one option", options=["Yes"])

    @pytest.mark.asyncio
    async def test_public_lookup(self, presets, mock_db):
        created = await presets.create_preset(mock_db, _create(exploration_themes=["  Focus ", ""]))
        info = await presets.get_public_preset(mock_db, created.slug)
        assert info.title == "Team survey"
        assert info.exploration_themes == ["Focus"]
        with pytest.raises(SurveyNotFoundError):
            await presets.get_public_preset(mock_db, "missing")


class TestUpdatePreset:

    @pytest.mark.asyncio
    async def test_only_set_fields_change(self, presets, mock_db):
        created = await presets.create_preset(mock_db, _create(background_text="Original"))
        info = await presets.update_preset(mock_db, created.admin_token, PresetUpdate(title="Renamed"))
        assert info.title == "Renamed"
        assert info.background_text == "Original"

    @pytest.mark.asyncio
    async def test_explicit_null_clears_email(self, presets, mock_db, mock_repo):
        created = await presets.create_preset(mock_db, _create(notification_email="owner@teamsurvey.org"))
        await presets.update_preset(mock_db, created.admin_token, PresetUpdate(notification_email=None))
        assert next(iter(mock_repo.presets.values())).notification_email is None

    @pytest.mark.asyncio
    async def test_required_field_cannot_be_null(self, presets, mock_db):
        created = await presets.create_preset(mock_db, _create())
        with pytest.raises(SurveyValidationError):
            await presets.update_preset(mock_db, created.admin_token, PresetUpdate(title=None))

    @pytest.mark.asyncio
    async def test_wrong_token(self, presets, mock_db):
        with pytest.raises(SurveyNotFoundError):
            await presets.update_preset(mock_db, "wrong", PresetUpdate(title="x"))
        with pytest.raises(SurveyNotFoundError):
            await presets.get_dashboard(mock_db, "")

    @pytest.mark.asyncio
    async def test_existing_sessions_keep_their_copy(self, presets, orchestrator, mock_db):
        created = await presets.create_preset(mock_db, _create())
        info = await orchestrator.create_session(mock_db, preset_slug=created.slug)
        await presets.update_preset(mock_db, created.admin_token, PresetUpdate(purpose="Something else"))
        state = await orchestrator.get_session_state(mock_db, info.id)
        assert state.session.purpose == "How the team sees remote work"


class TestDashboard:

    @pytest.mark.asyncio
    async def test_sessions_newest_first(self, presets, orchestrator, mock_db):
        created = await presets.create_preset(mock_db, _create())
        older = await orchestrator.create_session(mock_db, preset_slug=created.slug)
        newer = await orchestrator.create_session(mock_db, preset_slug=created.slug)
        batch = await orchestrator.generate_batch(mock_db, older.id, 1, 5)
        for q in batch.questions:
            await orchestrator.submit_answer(mock_db, older.id, q.id, ChoiceAnswer(index=0))
        await orchestrator.finalize(mock_db, older.id)
        await orchestrator.generate_survey_report(mock_db, created.admin_token)

        dashboard = await presets.get_dashboard(mock_db, created.admin_token)

        assert [s.id for s in dashboard.sessions] == [newer.id, older.id]
        assert dashboard.sessions[1].answered_count == 5
        assert dashboard.sessions[1].has_report
        assert dashboard.sessions[1].status == "completed"
        assert not dashboard.sessions[0].has_report
        assert [r.version for r in dashboard.survey_reports] == [1]
        assert dashboard.survey_reports[0].citations[0].marker == "[U1-Q1]"
        assert dashboard.survey_reports[0].citations[0].resolved

        reports = await presets.list_survey_reports(mock_db, created.admin_token)
        assert reports[0].status == "completed"
        assert [c.marker for c in reports[0].citations] == ["[U1-Q1]"]
        assert reports[0].citations[0].statement == "Statement 1"


class TestAuthoringHelpers:

    @pytest.mark.asyncio
    async def test_background(self, presets, generator):
        text = await presets.generate_background("Understand remote work", title="Remote")
        assert text == "A neutral background text."
        assert "Understand remote work" in generator.calls_of("background")[0]["prompt"]

    @pytest.mark.asyncio
    async def test_background_alternate_key(self, mock_repo, prompts):
        svc = PresetService(FakeGenerator(overrides={"background": '{"background_text": "Alt"}'}), prompts)
        svc._repo = mock_repo
        assert await svc.generate_background("p") == "Alt"

    @pytest.mark.asyncio
    async def test_themes(self, presets):
        themes = await presets.generate_exploration_themes("Understand remote work", "Some background")
        assert themes == ["Theme A", "Theme B", "Theme C", "Theme D", "Theme E"]

    @pytest.mark.asyncio
    async def test_themes_legacy_key(self, prompts):
        svc = PresetService(FakeGenerator(overrides={"themes": '```json\n{"keyQuestions": ["Q?"]}\n```'}), prompts)
        assert await svc.generate_exploration_themes("p") == ["Q?"]

    @pytest.mark.asyncio
    async def test_unusable_output(self, prompts):
        svc = PresetService(FakeGenerator(overrides={"themes": "no json here"}), prompts)
        with pytest.raises(GenerationError):
            await svc.generate_exploration_themes("p")

    @pytest.mark.asyncio
    async def test_purpose_required(self, presets, generator):
        with pytest.raises(SurveyValidationError):
            await presets.generate_background("  ")
        assert generator.calls == []
