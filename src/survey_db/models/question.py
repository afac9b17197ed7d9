"""Question and Answer ORM models.

Questions are insert-only: the unique ``(session_id, question_index)``
constraint turns a retried batch insert into a no-op.  Each question has at
most one answer row (unique ``question_id``), written by upsert.
"""

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from survey_db.models.base import Base, utcnow
from survey_db.models.enums import QuestionSource


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("survey_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    # 1-based position within the session
    question_index: Mapped[int] = mapped_column(Integer, nullable=False)
    statement: Mapped[str] = mapped_column(Text, nullable=False)
    detail: Mapped[str] = mapped_column(Text, nullable=False, default="")
    options: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    phase: Mapped[str] = mapped_column(String(20), nullable=False)
    source: Mapped[str] = mapped_column(String(10), nullable=False, default=QuestionSource.AI)
    question_type: Mapped[str] = mapped_column(String(20), nullable=False, default="radio")
    # {min, max, min_label, max_label} for scale questions
    scale_config: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow,
    )

    answer = relationship("Answer", uselist=False, back_populates="question", lazy="raise")

    __table_args__ = (
        UniqueConstraint("session_id", "question_index", name="uq_question_session_index"),
    )

    def __repr__(self) -> str:
        return f"<Question(session={self.session_id!s}, index={self.question_index}, source={self.source!r})>"


class Answer(Base):
    __tablename__ = "answers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    question_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("survey_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Option index; one past the last option means the free-text answer.
    # Holds the numeric value for scale questions.
    selected_option: Mapped[int | None] = mapped_column(Integer, nullable=True)
    free_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    selected_options: Mapped[list[int] | None] = mapped_column(ARRAY(Integer), nullable=True)
    answer_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    question = relationship("Question", back_populates="answer", lazy="raise")
