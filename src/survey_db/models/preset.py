"""Preset ORM model — a shareable survey configuration.

Respondents reach a preset through its public ``slug``; the author manages
it through ``admin_token``, a secret that is never exposed by public reads.
"""

import uuid
from datetime import datetime

from sqlalchemy import SmallInteger, String, Text, text
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from survey_db.models.base import Base, utcnow


class Preset(Base):
    __tablename__ = "presets"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    # 8 url-safe characters, used in share links
    slug: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)
    admin_token: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    purpose: Mapped[str] = mapped_column(Text, nullable=False)
    background_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    report_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    exploration_themes: Mapped[list[str]] = mapped_column(
        ARRAY(Text), nullable=False, server_default=text("'{}'::text[]"), default=list,
    )
    # [{statement, detail, options, question_type, scale_config}, ...]
    fixed_questions: Mapped[list] = mapped_column(
        JSONB, nullable=False, server_default=text("'[]'::jsonb"), default=list,
    )
    report_target: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=25)

    og_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    og_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    notification_email: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    sessions = relationship("SurveySession", back_populates="preset", lazy="raise")

    def __repr__(self) -> str:
        return f"<Preset(id={self.id!s}, slug={self.slug!r}, title={self.title!r})>"
