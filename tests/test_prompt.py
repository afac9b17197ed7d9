"""PromptManager tests — verify prompt rendering for every model task.

Contexts are built directly (no DB needed) and the rendered strings are
checked for the elements the model relies on.
"""

import pytest

from survey_engine.models.answer import (
    ChoiceAnswer,
    FreeTextAnswer,
    MultiChoiceAnswer,
    ScaleAnswer,
    Unanswered,
)
from survey_engine.models.question import QuestionRecord
from survey_engine.prompt import (
    AnalysisContext,
    Participant,
    QAItem,
    QuestionGenerationContext,
    ReportContext,
    SurveyReportContext,
    format_answer_text,
)
from survey_engine.prompt.manager import FixedInBatch

SIX = ["Yes", "Don't know", "No", "Mostly", "Partly", "Rarely"]


def _qa(index, answer=ChoiceAnswer(index=0), source="ai"):
    question = QuestionRecord(
        id=f"q{index}", question_index=index, statement=f"Statement {index}",
        detail="detail", options=SIX, source=source,
    )
    return QAItem.from_question(question, answer)


class TestFormatAnswerText:

    def test_choice(self):
        assert format_answer_text(SIX, ChoiceAnswer(index=3)) == "Mostly"

    def test_free_text(self):
        assert format_answer_text(SIX, FreeTextAnswer(text="my own")) == "Other (free text): my own"

    def test_multi(self):
        assert format_answer_text(SIX, MultiChoiceAnswer(indices=[0, 2])) == "Yes, No"

    def test_scale(self):
        assert format_answer_text([], ScaleAnswer(value=3), {"min": 1, "max": 5}) == "3 / 5"

    def test_unanswered(self):
        assert format_answer_text(SIX, Unanswered()) == "Unanswered"


class TestQuestionGeneration:

    def test_contains_range_count_history_and_policy(self, prompts):
        ctx = QuestionGenerationContext(
            purpose="Decide on a career change",
            background_text="",
            exploration_themes=["Money", "Meaning"],
            fixed_in_batch=[FixedInBatch(index=1, statement="I like my job")],
            history=[_qa(1)],
            start_index=4,
            end_index=5,
            count=2,
            phase="reframing",
        )
        text = prompts.render_question_generation(ctx)
        assert "Decide on a career change" in text
        assert "Q4 to Q5: 2 item(s)" in text
        assert "Q1: I like my job" in text, "fixed questions listed to avoid duplicates"
        assert "Answer: Yes" in text
        assert "REFRAMING" in text
        assert "1. Money" in text

    def test_count_defaults_to_range_width(self, prompts):
        ctx = QuestionGenerationContext(purpose="p", start_index=6, end_index=10, phase="exploration")
        text = prompts.render_question_generation(ctx)
        assert "Q6 to Q10: 5 item(s)" in text
        assert "No items yet" in text

    def test_deterministic(self, prompts):
        ctx = QuestionGenerationContext(purpose="p", start_index=1, end_index=5, phase="exploration")
        assert prompts.render_question_generation(ctx) == prompts.render_question_generation(ctx)


class TestAnalysisAndReports:

    def test_analysis_lists_batch(self, prompts):
        ctx = AnalysisContext(
            purpose="p",
            previous_analyses=["Earlier insight"],
            batch=[_qa(i) for i in range(6, 11)],
            start_index=6,
            end_index=10,
        )
        text = prompts.render_analysis(ctx)
        assert "(Q6-Q10)" in text
        assert "Earlier insight" in text
        assert "Q10: Statement 10" in text

    def test_report_separates_fixed_questions(self, prompts):
        ctx = ReportContext(
            purpose="p",
            report_instructions="Be brief",
            exploration_themes=["Money"],
            analyses=["a1"],
            qa=[_qa(1, source="fixed"), _qa(2)],
        )
        text = prompts.render_report(ctx)
        assert "Be brief" in text
        assert "Statement 1" in text and "Statement 2" in text
        assert "[Q" in text, "citation syntax explained to the model"

    def test_survey_report_uses_participant_markers(self, prompts):
        ctx = SurveyReportContext(
            purpose="p",
            custom_instructions="Focus on money",
            fixed_questions=[{"statement": "Fixed one"}],
            participants=[
                Participant(user_number=1, qa=[_qa(1)], personal_report="Report one"),
                Participant(user_number=3, qa=[_qa(2, FreeTextAnswer(text="mine"))]),
            ],
        )
        text = prompts.render_survey_report(ctx)
        assert "[U1-Q1] Statement 1" in text
        assert "[U3-Q2] Statement 2" in text
        assert "Other (free text): mine" in text
        assert "Focus on money" in text
        assert "Fixed one" in text
        assert "Not generated yet" in text


class TestAuthoringAndEmail:

    def test_background_mentions_json_key(self, prompts):
        text = prompts.render_background("Understand remote work", title="Remote")
        assert "Understand remote work" in text
        assert "backgroundText" in text

    def test_themes_mentions_json_key(self, prompts):
        assert '"themes"' in prompts.render_themes("p", "bg")

    def test_completion_email_escapes_title(self, prompts):
        html = prompts.render_completion_email(
            preset_title="<b>Team</b>", slug="abc", completed_count=4,
            manage_url="https://example.org/presets/abc/manage",
        )
        assert "&lt;b&gt;Team&lt;/b&gt;" in html
        assert "https://example.org/presets/abc/manage" in html
        assert ">4<" in html
