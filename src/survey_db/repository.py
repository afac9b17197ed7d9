"""Async CRUD repository for survey records.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries: the repository only ``flush()``es, the FastAPI
dependency commits or rolls back.

Business rules live in the SDK.  The repository enforces the structural
ones through unique constraints, and every insert that can race uses
``ON CONFLICT DO NOTHING``:

  - questions (session_id, question_index): duplicates are ignored
  - analyses (session_id, batch_index): first write wins, loser gets None
  - reports / survey_reports (owner, version): loser gets None and retries
"""

import uuid
from typing import Any, Iterable

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from survey_db.models.base import utcnow
from survey_db.models.enums import SessionStatus, SurveyReportStatus
from survey_db.models.preset import Preset
from survey_db.models.question import Answer, Question
from survey_db.models.report import Analysis, Report, SurveyReport
from survey_db.models.session import SurveySession

_ANSWER_FIELDS = ("selected_option", "free_text", "selected_options", "answer_text")


class SurveyRepository:
    """Async read/write operations on the survey tables."""

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(self, db: AsyncSession, **fields: Any) -> SurveySession:
        """Insert a new session row and return it.

        The caller must ``await db.commit()`` to persist.
        """
        session = SurveySession(**fields)
        db.add(session)
        await db.flush()
        return session

    async def get_session(
        self, db: AsyncSession, session_id: uuid.UUID
    ) -> SurveySession | None:
        return await db.get(SurveySession, session_id)

    async def list_sessions(
        self, db: AsyncSession, *, limit: int = 20, offset: int = 0
    ) -> list[SurveySession]:
        """Most recent first."""
        stmt = (
            select(SurveySession)
            .order_by(SurveySession.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def list_preset_sessions(
        self, db: AsyncSession, preset_id: uuid.UUID
    ) -> list[SurveySession]:
        """Oldest first: the position is the participant number in aggregate reports."""
        stmt = (
            select(SurveySession)
            .where(SurveySession.preset_id == preset_id)
            .order_by(SurveySession.created_at.asc(), SurveySession.id.asc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def count_completed_sessions(self, db: AsyncSession, preset_id: uuid.UUID) -> int:
        stmt = select(func.count()).select_from(SurveySession).where(
            SurveySession.preset_id == preset_id,
            SurveySession.status == SessionStatus.COMPLETED.value,
        )
        return int((await db.execute(stmt)).scalar_one())

    async def update_session(
        self,
        db: AsyncSession,
        session: SurveySession,
        *,
        current_question_index: int | None = None,
        status: SessionStatus | None = None,
    ) -> SurveySession:
        if current_question_index is not None:
            session.current_question_index = current_question_index
        if status is not None:
            session.status = status.value
        session.updated_at = utcnow()
        await db.flush()
        return session

    # ------------------------------------------------------------------
    # Questions & answers
    # ------------------------------------------------------------------

    async def list_questions_with_answers(
        self, db: AsyncSession, session_id: uuid.UUID
    ) -> list[Question]:
        """Questions ordered by index, each with ``answer`` loaded (or None)."""
        stmt = (
            select(Question)
            .where(Question.session_id == session_id)
            .options(selectinload(Question.answer))
            .execution_options(populate_existing=True)
            .order_by(Question.question_index)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def list_questions_for_sessions(
        self, db: AsyncSession, session_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, list[Question]]:
        """Batch variant of :meth:`list_questions_with_answers`."""
        ids = list(session_ids)
        grouped: dict[uuid.UUID, list[Question]] = {sid: [] for sid in ids}
        if not ids:
            return grouped
        stmt = (
            select(Question)
            .where(Question.session_id.in_(ids))
            .options(selectinload(Question.answer))
            .execution_options(populate_existing=True)
            .order_by(Question.session_id, Question.question_index)
        )
        result = await db.execute(stmt)
        for question in result.scalars().all():
            grouped[question.session_id].append(question)
        return grouped

    async def get_question(
        self, db: AsyncSession, question_id: uuid.UUID
    ) -> Question | None:
        stmt = (
            select(Question)
            .where(Question.id == question_id)
            .options(selectinload(Question.answer))
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert_questions(
        self, db: AsyncSession, rows: list[dict[str, Any]]
    ) -> list[Question]:
        """Insert question rows, ignoring indices that already exist.

        Returns only the rows this call actually inserted.
        """
        if not rows:
            return []
        now = utcnow()
        values = [{"id": uuid.uuid4(), "created_at": now, **row} for row in rows]
        stmt = (
            pg_insert(Question)
            .values(values)
            .on_conflict_do_nothing(index_elements=["session_id", "question_index"])
            .returning(Question)
        )
        result = await db.scalars(stmt)
        inserted = list(result.all())
        await db.flush()
        return inserted

    async def upsert_answer(
        self,
        db: AsyncSession,
        *,
        question_id: uuid.UUID,
        session_id: uuid.UUID,
        payload: dict[str, Any],
    ) -> Answer:
        """Insert or overwrite the single answer row of a question."""
        now = utcnow()
        values = {field: payload.get(field) for field in _ANSWER_FIELDS}
        stmt = pg_insert(Answer).values(
            id=uuid.uuid4(),
            question_id=question_id,
            session_id=session_id,
            created_at=now,
            updated_at=now,
            **values,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["question_id"],
            set_={
                **{field: stmt.excluded[field] for field in _ANSWER_FIELDS},
                "updated_at": stmt.excluded.updated_at,
            },
        ).returning(Answer).execution_options(populate_existing=True)
        result = await db.scalars(stmt)
        return result.one()

    # ------------------------------------------------------------------
    # Analyses
    # ------------------------------------------------------------------

    async def insert_analysis(
        self,
        db: AsyncSession,
        *,
        session_id: uuid.UUID,
        batch_index: int,
        start_index: int,
        end_index: int,
        analysis_text: str,
    ) -> Analysis | None:
        """Insert an analysis; ``None`` if one already exists for the batch."""
        stmt = (
            pg_insert(Analysis)
            .values(
                id=uuid.uuid4(),
                session_id=session_id,
                batch_index=batch_index,
                start_index=start_index,
                end_index=end_index,
                analysis_text=analysis_text,
                created_at=utcnow(),
            )
            .on_conflict_do_nothing(index_elements=["session_id", "batch_index"])
            .returning(Analysis)
        )
        result = await db.scalars(stmt)
        return result.one_or_none()

    async def get_analysis(
        self, db: AsyncSession, session_id: uuid.UUID, batch_index: int
    ) -> Analysis | None:
        stmt = select(Analysis).where(
            Analysis.session_id == session_id,
            Analysis.batch_index == batch_index,
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_analyses(
        self, db: AsyncSession, session_id: uuid.UUID
    ) -> list[Analysis]:
        stmt = (
            select(Analysis)
            .where(Analysis.session_id == session_id)
            .order_by(Analysis.batch_index)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Personal reports
    # ------------------------------------------------------------------

    async def latest_report_version(
        self, db: AsyncSession, session_id: uuid.UUID
    ) -> int | None:
        stmt = select(func.max(Report.version)).where(Report.session_id == session_id)
        return (await db.execute(stmt)).scalar_one_or_none()

    async def insert_report(
        self,
        db: AsyncSession,
        *,
        session_id: uuid.UUID,
        version: int,
        report_text: str,
    ) -> Report | None:
        """Insert a report version; ``None`` if the version is already taken."""
        stmt = (
            pg_insert(Report)
            .values(
                id=uuid.uuid4(),
                session_id=session_id,
                version=version,
                report_text=report_text,
                created_at=utcnow(),
            )
            .on_conflict_do_nothing(index_elements=["session_id", "version"])
            .returning(Report)
        )
        result = await db.scalars(stmt)
        return result.one_or_none()

    async def get_latest_report(
        self, db: AsyncSession, session_id: uuid.UUID
    ) -> Report | None:
        stmt = (
            select(Report)
            .where(Report.session_id == session_id)
            .order_by(Report.version.desc())
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_latest_reports(
        self, db: AsyncSession, session_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, Report]:
        """Latest report per session (sessions without one are absent)."""
        ids = list(session_ids)
        if not ids:
            return {}
        stmt = (
            select(Report)
            .where(Report.session_id.in_(ids))
            .distinct(Report.session_id)
            .order_by(Report.session_id, Report.version.desc())
        )
        result = await db.execute(stmt)
        return {r.session_id: r for r in result.scalars().all()}

    # ------------------------------------------------------------------
    # Aggregate reports
    # ------------------------------------------------------------------

    async def latest_survey_report_version(
        self, db: AsyncSession, preset_id: uuid.UUID
    ) -> int | None:
        stmt = select(func.max(SurveyReport.version)).where(SurveyReport.preset_id == preset_id)
        return (await db.execute(stmt)).scalar_one_or_none()

    async def insert_survey_report(
        self,
        db: AsyncSession,
        *,
        preset_id: uuid.UUID,
        version: int,
        custom_instructions: str | None = None,
    ) -> SurveyReport | None:
        """Insert a ``generating`` row; ``None`` if the version is already taken."""
        now = utcnow()
        stmt = (
            pg_insert(SurveyReport)
            .values(
                id=uuid.uuid4(),
                preset_id=preset_id,
                version=version,
                report_text="",
                custom_instructions=custom_instructions,
                status=SurveyReportStatus.GENERATING.value,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["preset_id", "version"])
            .returning(SurveyReport)
        )
        result = await db.scalars(stmt)
        return result.one_or_none()

    async def update_survey_report(
        self,
        db: AsyncSession,
        report: SurveyReport,
        *,
        status: SurveyReportStatus,
        report_text: str | None = None,
    ) -> SurveyReport:
        report.status = status.value
        if report_text is not None:
            report.report_text = report_text
        report.updated_at = utcnow()
        await db.flush()
        return report

    async def list_survey_reports(
        self, db: AsyncSession, preset_id: uuid.UUID
    ) -> list[SurveyReport]:
        """Newest version first."""
        stmt = (
            select(SurveyReport)
            .where(SurveyReport.preset_id == preset_id)
            .order_by(SurveyReport.version.desc())
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Presets
    # ------------------------------------------------------------------

    async def create_preset(self, db: AsyncSession, **fields: Any) -> Preset:
        preset = Preset(**fields)
        db.add(preset)
        await db.flush()
        return preset

    async def get_preset(self, db: AsyncSession, preset_id: uuid.UUID) -> Preset | None:
        return await db.get(Preset, preset_id)

    async def get_preset_by_slug(self, db: AsyncSession, slug: str) -> Preset | None:
        result = await db.execute(select(Preset).where(Preset.slug == slug))
        return result.scalar_one_or_none()

    async def get_preset_by_admin_token(
        self, db: AsyncSession, admin_token: str
    ) -> Preset | None:
        result = await db.execute(select(Preset).where(Preset.admin_token == admin_token))
        return result.scalar_one_or_none()

    async def update_preset(
        self, db: AsyncSession, preset: Preset, changes: dict[str, Any]
    ) -> Preset:
        """Apply a partial update.  Keys must be column names."""
        for key, value in changes.items():
            setattr(preset, key, value)
        preset.updated_at = utcnow()
        await db.flush()
        return preset
