"""PromptManager — Jinja2-based prompt renderer for the four model tasks.

Loads templates from the ``template/`` directory and renders typed contexts
into model-ready prompt strings:

  - question generation:  one batch of six-option statements (JSON output)
  - analysis:             ~200-char reflection on one finished batch
  - report:               personal report with ``[Q<n>]`` citations
  - survey report:        aggregate report with ``[U<n>-Q<m>]`` citations

plus the two preset authoring helpers (background text, exploration themes)
and the completion e-mail body.

Rendering is deterministic: identical contexts produce identical strings.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import jinja2
from pydantic import BaseModel, Field

from survey_engine.models.answer import (
    AnswerValue,
    ChoiceAnswer,
    FreeTextAnswer,
    MultiChoiceAnswer,
    ScaleAnswer,
    TextAnswer,
    Unanswered,
)
from survey_engine.models.question import QuestionRecord
from survey_engine.phase import Phase, policy_text

UNANSWERED_LABEL = "Unanswered"
FREE_TEXT_LABEL = "Other (free text)"


def format_answer_text(
    options: list[str],
    answer: AnswerValue,
    scale_config: dict | None = None,
) -> str:
    """Human-readable answer label used inside every prompt."""
    if isinstance(answer, ChoiceAnswer):
        if answer.index < len(options):
            return options[answer.index]
        return UNANSWERED_LABEL
    if isinstance(answer, FreeTextAnswer):
        text = answer.text.strip()
        return f"{FREE_TEXT_LABEL}: {text}" if text else FREE_TEXT_LABEL
    if isinstance(answer, MultiChoiceAnswer):
        labels = [options[i] for i in answer.indices if 0 <= i < len(options)]
        return ", ".join(labels) if labels else UNANSWERED_LABEL
    if isinstance(answer, TextAnswer):
        return answer.text
    if isinstance(answer, ScaleAnswer):
        upper = (scale_config or {}).get("max")
        return f"{answer.value} / {upper}" if upper is not None else str(answer.value)
    return UNANSWERED_LABEL


# ---------------------------------------------------------------------------
# Render contexts
# ---------------------------------------------------------------------------

class QAItem(BaseModel):
    """One question with its formatted answer, as it appears in prompts."""

    index: int
    statement: str
    detail: str = ""
    options: list[str] = Field(default_factory=list)
    source: str = "ai"
    answered: bool = False
    answer_text: str = UNANSWERED_LABEL

    @classmethod
    def from_question(cls, question: QuestionRecord, answer: AnswerValue) -> "QAItem":
        return cls(
            index=question.question_index,
            statement=question.statement,
            detail=question.detail,
            options=question.options,
            source=question.source,
            answered=not isinstance(answer, Unanswered),
            answer_text=format_answer_text(question.options, answer, question.scale_config),
        )

    @property
    def answer_line(self) -> str:
        return f"Answer: {self.answer_text}" if self.answered else UNANSWERED_LABEL


class FixedInBatch(BaseModel):
    index: int
    statement: str


class QuestionGenerationContext(BaseModel):
    purpose: str
    background_text: str = ""
    exploration_themes: list[str] = Field(default_factory=list)
    fixed_in_batch: list[FixedInBatch] = Field(default_factory=list)
    history: list[QAItem] = Field(default_factory=list)
    start_index: int
    end_index: int
    # Slots to fill; less than the range width when some indices already exist.
    count: Optional[int] = None
    phase: Phase


class AnalysisContext(BaseModel):
    purpose: str
    background_text: str = ""
    previous_analyses: list[str] = Field(default_factory=list)
    batch: list[QAItem]
    start_index: int
    end_index: int


class ReportContext(BaseModel):
    purpose: str
    background_text: str = ""
    report_instructions: Optional[str] = None
    exploration_themes: list[str] = Field(default_factory=list)
    analyses: list[str] = Field(default_factory=list)
    qa: list[QAItem]


class Participant(BaseModel):
    user_number: int
    qa: list[QAItem]
    personal_report: Optional[str] = None


class SurveyReportContext(BaseModel):
    purpose: str
    background_text: str = ""
    report_instructions: Optional[str] = None
    custom_instructions: Optional[str] = None
    exploration_themes: list[str] = Field(default_factory=list)
    fixed_questions: list[dict] = Field(default_factory=list)
    participants: list[Participant]


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------

class PromptManager:
    """Jinja2-based prompt renderer.

    Args:
        template_dir: optional override for the template directory.
            Defaults to ``template/`` sibling of this module.
    """

    def __init__(self, template_dir: Path | None = None) -> None:
        if template_dir is None:
            template_dir = Path(__file__).parent / "template"
        self._env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(template_dir)),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
            undefined=jinja2.StrictUndefined,
        )
        self._env.filters["tojson"] = lambda v: json.dumps(v, ensure_ascii=False)

    def render(self, template_name: str, **context) -> str:
        """Render a named template with arbitrary context."""
        template = self._env.get_template(template_name)
        return template.render(**context).strip()

    # --- Model tasks ---

    def render_question_generation(self, ctx: QuestionGenerationContext) -> str:
        """Prompt asking for ``end - start + 1`` six-option statements."""
        return self.render(
            "question_generation.jinja2",
            purpose=ctx.purpose,
            background_text=ctx.background_text,
            themes=ctx.exploration_themes,
            fixed_in_batch=ctx.fixed_in_batch,
            history=ctx.history,
            start_index=ctx.start_index,
            end_index=ctx.end_index,
            count=ctx.count or ctx.end_index - ctx.start_index + 1,
            policy=policy_text(ctx.phase),
        )

    def render_analysis(self, ctx: AnalysisContext) -> str:
        return self.render(
            "analysis.jinja2",
            purpose=ctx.purpose,
            background_text=ctx.background_text,
            previous_analyses=ctx.previous_analyses,
            batch=ctx.batch,
            start_index=ctx.start_index,
            end_index=ctx.end_index,
        )

    def render_report(self, ctx: ReportContext) -> str:
        """Personal report prompt.

        Fixed questions get their own section, and so does every exploration
        theme; both sections are omitted when empty.
        """
        return self.render(
            "report.jinja2",
            purpose=ctx.purpose,
            background_text=ctx.background_text,
            report_instructions=ctx.report_instructions,
            themes=ctx.exploration_themes,
            analyses=ctx.analyses,
            all_qa=ctx.qa,
            fixed=[qa for qa in ctx.qa if qa.source == "fixed"],
        )

    def render_survey_report(self, ctx: SurveyReportContext) -> str:
        return self.render(
            "survey_report.jinja2",
            purpose=ctx.purpose,
            background_text=ctx.background_text,
            report_instructions=ctx.report_instructions,
            custom_instructions=ctx.custom_instructions,
            themes=ctx.exploration_themes,
            fixed_questions=ctx.fixed_questions,
            participants=ctx.participants,
        )

    # --- Authoring helpers ---

    def render_background(self, purpose: str, title: str | None = None) -> str:
        return self.render("background.jinja2", purpose=purpose, title=title)

    def render_themes(self, purpose: str, background_text: str | None = None) -> str:
        return self.render("themes.jinja2", purpose=purpose, background_text=background_text or "")

    # --- Notifications ---

    def render_completion_email(
        self,
        *,
        preset_title: str,
        slug: str,
        completed_count: int,
        manage_url: str | None,
    ) -> str:
        return self.render(
            "completion_email.jinja2",
            preset_title=preset_title,
            slug=slug,
            completed_count=completed_count,
            manage_url=manage_url,
        )
