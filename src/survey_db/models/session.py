"""SurveySession ORM model — one respondent's run through a survey.

Purpose, background, themes and fixed questions are copied from the preset
at creation, so later preset edits never change a session in flight.
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, SmallInteger, String, Text, text
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from survey_db.models.base import Base, utcnow
from survey_db.models.enums import SessionStatus


class SurveySession(Base):
    __tablename__ = "survey_sessions"

    # --- Primary key ---
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )

    # --- Survey definition (copied from the preset, if any) ---
    title: Mapped[str] = mapped_column(Text, nullable=False)
    purpose: Mapped[str] = mapped_column(Text, nullable=False)
    background_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    report_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    exploration_themes: Mapped[list[str]] = mapped_column(
        ARRAY(Text), nullable=False, server_default=text("'{}'::text[]"), default=list,
    )
    fixed_questions: Mapped[list] = mapped_column(
        JSONB, nullable=False, server_default=text("'[]'::jsonb"), default=list,
    )

    # --- Batch lifecycle ---
    # [{start, end, phase}, ...] covering 1..report_target in 5-wide ranges
    phase_profile: Mapped[list] = mapped_column(
        JSONB, nullable=False, server_default=text("'[]'::jsonb"), default=list,
    )
    report_target: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=25)
    # Highest question index materialized so far
    current_question_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SessionStatus.ACTIVE, index=True,
    )

    preset_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("presets.id", ondelete="SET NULL"), nullable=True,
    )

    # --- Timestamps ---
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    preset = relationship("Preset", back_populates="sessions", lazy="raise")

    __table_args__ = (
        CheckConstraint(
            "report_target >= 5 AND report_target % 5 = 0",
            name="ck_report_target_multiple_of_5",
        ),
        CheckConstraint(
            "status IN ('active', 'completed', 'paused')",
            name="ck_session_status",
        ),
        Index("ix_survey_sessions_preset_created", "preset_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<SurveySession(id={self.id!s}, status={self.status!r}, "
            f"index={self.current_question_index}, target={self.report_target})>"
        )
