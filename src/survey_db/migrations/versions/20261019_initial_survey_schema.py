"""Create the survey tables.

presets, survey_sessions, questions, answers, analyses, reports and
survey_reports, with the unique constraints that make retried inserts
no-ops: (session_id, question_index), (question_id), (session_id,
batch_index), (session_id, version) and (preset_id, version).

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, TIMESTAMP, UUID

# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated: bool = True) -> list[sa.Column]:
    cols = [
        sa.Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]
    if updated:
        cols.append(
            sa.Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=sa.text("now()")),
        )
    return cols


def upgrade() -> None:
    # --- presets ---
    op.create_table(
        "presets",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("slug", sa.String(16), nullable=False),
        sa.Column("admin_token", sa.Text, nullable=False),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("purpose", sa.Text, nullable=False),
        sa.Column("background_text", sa.Text, nullable=False, server_default=sa.text("''")),
        sa.Column("report_instructions", sa.Text, nullable=True),
        sa.Column("exploration_themes", ARRAY(sa.Text), nullable=False, server_default=sa.text("'{}'::text[]")),
        sa.Column("fixed_questions", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("report_target", sa.SmallInteger, nullable=False, server_default=sa.text("25")),
        sa.Column("og_title", sa.Text, nullable=True),
        sa.Column("og_description", sa.Text, nullable=True),
        sa.Column("notification_email", sa.Text, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("slug", name="uq_presets_slug"),
        sa.UniqueConstraint("admin_token", name="uq_presets_admin_token"),
    )

    # --- survey_sessions ---
    op.create_table(
        "survey_sessions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("purpose", sa.Text, nullable=False),
        sa.Column("background_text", sa.Text, nullable=False, server_default=sa.text("''")),
        sa.Column("report_instructions", sa.Text, nullable=True),
        sa.Column("exploration_themes", ARRAY(sa.Text), nullable=False, server_default=sa.text("'{}'::text[]")),
        sa.Column("fixed_questions", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("phase_profile", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("report_target", sa.SmallInteger, nullable=False, server_default=sa.text("25")),
        sa.Column("current_question_index", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        sa.Column(
            "preset_id",
            UUID(as_uuid=True),
            sa.ForeignKey("presets.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
        sa.CheckConstraint(
            "report_target >= 5 AND report_target % 5 = 0",
            name="ck_report_target_multiple_of_5",
        ),
        sa.CheckConstraint(
            "status IN ('active', 'completed', 'paused')",
            name="ck_session_status",
        ),
    )
    op.create_index("ix_survey_sessions_status", "survey_sessions", ["status"])
    op.create_index("ix_survey_sessions_preset_created", "survey_sessions", ["preset_id", "created_at"])

    # --- questions ---
    op.create_table(
        "questions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "session_id",
            UUID(as_uuid=True),
            sa.ForeignKey("survey_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("question_index", sa.Integer, nullable=False),
        sa.Column("statement", sa.Text, nullable=False),
        sa.Column("detail", sa.Text, nullable=False, server_default=sa.text("''")),
        sa.Column("options", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("phase", sa.String(20), nullable=False),
        sa.Column("source", sa.String(10), nullable=False, server_default=sa.text("'ai'")),
        sa.Column("question_type", sa.String(20), nullable=False, server_default=sa.text("'radio'")),
        sa.Column("scale_config", JSONB, nullable=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint("session_id", "question_index", name="uq_question_session_index"),
    )

    # --- answers ---
    op.create_table(
        "answers",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "question_id",
            UUID(as_uuid=True),
            sa.ForeignKey("questions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "session_id",
            UUID(as_uuid=True),
            sa.ForeignKey("survey_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("selected_option", sa.Integer, nullable=True),
        sa.Column("free_text", sa.Text, nullable=True),
        sa.Column("selected_options", ARRAY(sa.Integer), nullable=True),
        sa.Column("answer_text", sa.Text, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("question_id", name="uq_answers_question_id"),
    )
    op.create_index("ix_answers_session_id", "answers", ["session_id"])

    # --- analyses ---
    op.create_table(
        "analyses",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "session_id",
            UUID(as_uuid=True),
            sa.ForeignKey("survey_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("batch_index", sa.Integer, nullable=False),
        sa.Column("start_index", sa.Integer, nullable=False),
        sa.Column("end_index", sa.Integer, nullable=False),
        sa.Column("analysis_text", sa.Text, nullable=False),
        *_timestamps(updated=False),
        sa.UniqueConstraint("session_id", "batch_index", name="uq_analysis_session_batch"),
        sa.CheckConstraint("end_index = batch_index * 5", name="ck_analysis_batch_end"),
    )

    # --- reports ---
    op.create_table(
        "reports",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "session_id",
            UUID(as_uuid=True),
            sa.ForeignKey("survey_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("report_text", sa.Text, nullable=False),
        *_timestamps(updated=False),
        sa.UniqueConstraint("session_id", "version", name="uq_report_session_version"),
    )

    # --- survey_reports ---
    op.create_table(
        "survey_reports",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "preset_id",
            UUID(as_uuid=True),
            sa.ForeignKey("presets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("version", sa.Integer, nullable=False),
        sa.Column("report_text", sa.Text, nullable=False, server_default=sa.text("''")),
        sa.Column("custom_instructions", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'generating'")),
        *_timestamps(),
        sa.UniqueConstraint("preset_id", "version", name="uq_survey_report_preset_version"),
        sa.CheckConstraint(
            "status IN ('generating', 'completed', 'failed')",
            name="ck_survey_report_status",
        ),
    )


def downgrade() -> None:
    op.drop_table("survey_reports")
    op.drop_table("reports")
    op.drop_table("analyses")
    op.drop_index("ix_answers_session_id", table_name="answers")
    op.drop_table("answers")
    op.drop_table("questions")
    op.drop_index("ix_survey_sessions_preset_created", table_name="survey_sessions")
    op.drop_index("ix_survey_sessions_status", table_name="survey_sessions")
    op.drop_table("survey_sessions")
    op.drop_table("presets")
