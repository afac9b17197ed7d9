"""Question models — author-defined fixed questions and model-generated ones.

``FixedQuestionDef`` is what a preset author writes; it is copied onto every
session created from the preset and materialized verbatim at indices 1..N.

``GeneratedQuestion`` is one item of the model's ``{"questions": [...]}``
payload.  Validation is strict: an item that does not carry a statement and
exactly six options makes the whole batch a generation failure.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from survey_engine.constants import OPTION_COUNT

QuestionType = Literal["radio", "checkbox", "dropdown", "text", "textarea", "scale"]
QuestionSource = Literal["fixed", "ai"]

TEXT_QUESTION_TYPES = frozenset({"text", "textarea"})


class ScaleConfig(BaseModel):
    min: int = 1
    max: int = 5
    min_label: Optional[str] = Field(default=None, max_length=100)
    max_label: Optional[str] = Field(default=None, max_length=100)

    @model_validator(mode="after")
    def _check_bounds(self) -> "ScaleConfig":
        if self.min >= self.max:
            raise ValueError("scale_config.min must be lower than scale_config.max")
        return self


class FixedQuestionDef(BaseModel):
    """Author-written question shown identically to every respondent."""

    statement: str = Field(min_length=1, max_length=500)
    detail: str = Field(default="", max_length=1000)
    options: list[str] = Field(default_factory=list, max_length=10)
    question_type: QuestionType = "radio"
    scale_config: Optional[ScaleConfig] = None

    @field_validator("options")
    @classmethod
    def _check_option_length(cls, v: list[str]) -> list[str]:
        for opt in v:
            if len(opt) > 200:
                raise ValueError("option labels must be at most 200 characters")
        return v

    @model_validator(mode="after")
    def _check_options_for_type(self) -> "FixedQuestionDef":
        # Text answers need no options; a scale is fully described by its config.
        if self.question_type in TEXT_QUESTION_TYPES:
            return self
        if self.question_type == "scale" and self.scale_config is not None:
            return self
        if len(self.options) < 2:
            raise ValueError(
                f"{self.question_type} questions need at least 2 options"
            )
        return self


class GeneratedQuestion(BaseModel):
    """One question as returned by the model."""

    statement: str = Field(min_length=1)
    detail: str = ""
    options: list[str]

    @field_validator("options")
    @classmethod
    def _check_option_count(cls, v: list[str]) -> list[str]:
        if len(v) != OPTION_COUNT:
            raise ValueError(f"expected exactly {OPTION_COUNT} options, got {len(v)}")
        return v


class QuestionRecord(BaseModel):
    """A materialized question row, as the engine sees it.

    Decoupled from the ORM row so prompt rendering and the controller can be
    exercised without a database.
    """

    id: str
    question_index: int
    statement: str
    detail: str = ""
    options: list[str] = Field(default_factory=list)
    phase: str = "exploration"
    source: QuestionSource = "ai"
    question_type: QuestionType = "radio"
    scale_config: Optional[dict] = None
