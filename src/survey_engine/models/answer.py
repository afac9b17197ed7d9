"""Answer models — an explicit tagged variant instead of magic option indices.

Respondents answer in one of these shapes, discriminated on ``kind``:

  - choice:        one of the question's options (by index)
  - free_text:     the "other" escape hatch with free text
  - multi_choice:  checkbox selection (one or more option indices)
  - text:          text / textarea answer
  - scale:         numeric value on a scale question
  - unanswered:    no answer (or a cleared one)

Storage keeps the historical column layout (``selected_option``,
``free_text``, ``selected_options``, ``answer_text``).  The free-text variant
is stored as ``selected_option = len(options)``, one past the last option,
and that encoding never leaves :func:`encode_answer` / :func:`decode_answer`.
"""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from survey_engine.constants import OPTION_COUNT
from survey_engine.errors import SurveyValidationError

# Storage index of the free-text escape hatch for six-option AI questions.
OTHER_OPTION_INDEX = OPTION_COUNT


class ChoiceAnswer(BaseModel):
    """The respondent picked ``options[index]``."""

    kind: Literal["choice"] = "choice"
    index: int = Field(ge=0)


class FreeTextAnswer(BaseModel):
    """None of the options fit; the respondent wrote their own stance."""

    kind: Literal["free_text"] = "free_text"
    text: str = ""


class MultiChoiceAnswer(BaseModel):
    """Checkbox answer: every selected option index."""

    kind: Literal["multi_choice"] = "multi_choice"
    indices: list[int]


class TextAnswer(BaseModel):
    """Answer to a text / textarea question."""

    kind: Literal["text"] = "text"
    text: str


class ScaleAnswer(BaseModel):
    """Numeric answer to a scale question."""

    kind: Literal["scale"] = "scale"
    value: int


class Unanswered(BaseModel):
    kind: Literal["unanswered"] = "unanswered"


AnswerValue = Annotated[
    Union[ChoiceAnswer, FreeTextAnswer, MultiChoiceAnswer, TextAnswer, ScaleAnswer, Unanswered],
    Field(discriminator="kind"),
]


class StoredAnswer(BaseModel):
    """Column-level view of an ``answers`` row."""

    selected_option: Optional[int] = None
    free_text: Optional[str] = None
    selected_options: Optional[list[int]] = None
    answer_text: Optional[str] = None


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------

def encode_answer(value: AnswerValue, *, option_count: int = OPTION_COUNT) -> StoredAnswer:
    """Map a tagged answer onto the storage columns."""
    if isinstance(value, ChoiceAnswer):
        return StoredAnswer(selected_option=value.index)
    if isinstance(value, FreeTextAnswer):
        return StoredAnswer(selected_option=option_count, free_text=value.text.strip() or None)
    if isinstance(value, MultiChoiceAnswer):
        return StoredAnswer(selected_options=sorted(set(value.indices)))
    if isinstance(value, TextAnswer):
        return StoredAnswer(answer_text=value.text)
    if isinstance(value, ScaleAnswer):
        return StoredAnswer(selected_option=value.value)
    return StoredAnswer()


def decode_answer(
    stored: StoredAnswer | None,
    *,
    question_type: str = "radio",
    option_count: int = OPTION_COUNT,
) -> AnswerValue:
    """Rebuild the tagged answer from storage columns.

    ``question_type`` decides which column is authoritative, mirroring the
    unanswered predicate in :func:`survey_engine.controller.is_unanswered`.
    """
    if stored is None:
        return Unanswered()

    if question_type in ("text", "textarea"):
        return TextAnswer(text=stored.answer_text) if stored.answer_text else Unanswered()

    if question_type == "checkbox":
        if stored.selected_options:
            return MultiChoiceAnswer(indices=list(stored.selected_options))
        return Unanswered()

    if stored.selected_option is None:
        return Unanswered()
    if question_type == "scale":
        return ScaleAnswer(value=stored.selected_option)
    if stored.selected_option == option_count:
        return FreeTextAnswer(text=stored.free_text or "")
    return ChoiceAnswer(index=stored.selected_option)


# ---------------------------------------------------------------------------
# Validation against the question being answered
# ---------------------------------------------------------------------------

_KINDS_BY_QUESTION_TYPE: dict[str, set[str]] = {
    "radio": {"choice", "free_text", "unanswered"},
    "dropdown": {"choice", "unanswered"},
    "checkbox": {"multi_choice", "unanswered"},
    "text": {"text", "unanswered"},
    "textarea": {"text", "unanswered"},
    "scale": {"scale", "unanswered"},
}


def validate_answer(
    value: AnswerValue,
    *,
    question_type: str,
    options: list[str],
    scale_config: dict | None = None,
) -> None:
    """Raise :class:`SurveyValidationError` if ``value`` cannot answer the question."""
    allowed = _KINDS_BY_QUESTION_TYPE.get(question_type, {"choice", "free_text", "unanswered"})
    if value.kind not in allowed:
        raise SurveyValidationError(
            f"answer kind '{value.kind}' is invalid for a {question_type} question"
        )

    if isinstance(value, ChoiceAnswer) and value.index >= len(options):
        raise SurveyValidationError(
            f"option index {value.index} out of range for {len(options)} options"
        )
    if isinstance(value, MultiChoiceAnswer):
        if not value.indices:
            raise SurveyValidationError("multi_choice answer needs at least one index")
        bad = [i for i in value.indices if i < 0 or i >= len(options)]
        if bad:
            raise SurveyValidationError(f"option indices out of range: {bad}")
    if isinstance(value, ScaleAnswer) and scale_config:
        lo, hi = scale_config.get("min"), scale_config.get("max")
        if lo is not None and hi is not None and not lo <= value.value <= hi:
            raise SurveyValidationError(
                f"scale value {value.value} outside [{lo}, {hi}]"
            )
