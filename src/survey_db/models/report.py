"""Analysis, Report and SurveyReport ORM models.

All three are keyed by an owner plus a number that must be unique per owner:

  - analyses:        (session_id, batch_index)  first write wins
  - reports:         (session_id, version)
  - survey_reports:  (preset_id, version)
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from survey_db.models.base import Base, utcnow
from survey_db.models.enums import SurveyReportStatus


class Analysis(Base):
    """Interim reflection on one finished 5-question batch."""

    __tablename__ = "analyses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("survey_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    batch_index: Mapped[int] = mapped_column(Integer, nullable=False)
    start_index: Mapped[int] = mapped_column(Integer, nullable=False)
    end_index: Mapped[int] = mapped_column(Integer, nullable=False)
    analysis_text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow,
    )

    __table_args__ = (
        UniqueConstraint("session_id", "batch_index", name="uq_analysis_session_batch"),
        CheckConstraint("end_index = batch_index * 5", name="ck_analysis_batch_end"),
    )


class Report(Base):
    """One version of a respondent's personal report."""

    __tablename__ = "reports"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("survey_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    report_text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow,
    )

    __table_args__ = (
        UniqueConstraint("session_id", "version", name="uq_report_session_version"),
    )


class SurveyReport(Base):
    """One version of the aggregate report over every session of a preset."""

    __tablename__ = "survey_reports"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    preset_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("presets.id", ondelete="CASCADE"),
        nullable=False,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    # Empty while generating
    report_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    custom_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SurveyReportStatus.GENERATING,
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    __table_args__ = (
        UniqueConstraint("preset_id", "version", name="uq_survey_report_preset_version"),
        CheckConstraint(
            "status IN ('generating', 'completed', 'failed')",
            name="ck_survey_report_status",
        ),
    )
