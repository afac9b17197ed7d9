"""Answer variant tests — storage codec and validation against questions."""

import pytest
from pydantic import TypeAdapter, ValidationError

from survey_engine.errors import SurveyValidationError
from survey_engine.models.answer import (
    AnswerValue,
    ChoiceAnswer,
    FreeTextAnswer,
    MultiChoiceAnswer,
    ScaleAnswer,
    StoredAnswer,
    TextAnswer,
    Unanswered,
    decode_answer,
    encode_answer,
    validate_answer,
)

SIX = ["Yes", "Don't know", "No", "A", "B", "C"]


class TestCodec:

    def test_free_text_is_one_past_the_options(self):
        stored = encode_answer(FreeTextAnswer(text=" my view "), option_count=6)
        assert stored.selected_option == 6
        assert stored.free_text == "my view"
        assert decode_answer(stored, option_count=6) == FreeTextAnswer(text="my view")

    def test_free_text_for_fixed_question_with_three_options(self):
        stored = encode_answer(FreeTextAnswer(text="x"), option_count=3)
        assert stored.selected_option == 3
        assert decode_answer(stored, option_count=3).kind == "free_text"

    def test_choice(self):
        stored = encode_answer(ChoiceAnswer(index=2))
        assert stored == StoredAnswer(selected_option=2)
        assert decode_answer(stored) == ChoiceAnswer(index=2)

    def test_multi_choice_sorted_and_deduplicated(self):
        stored = encode_answer(MultiChoiceAnswer(indices=[3, 1, 3]))
        assert stored.selected_options == [1, 3]
        assert decode_answer(stored, question_type="checkbox") == MultiChoiceAnswer(indices=[1, 3])

    def test_text_and_scale(self):
        assert decode_answer(encode_answer(TextAnswer(text="hi")), question_type="textarea") == TextAnswer(text="hi")
        assert decode_answer(encode_answer(ScaleAnswer(value=4)), question_type="scale") == ScaleAnswer(value=4)

    def test_unanswered_clears_every_column(self):
        assert encode_answer(Unanswered()) == StoredAnswer()
        assert decode_answer(None) == Unanswered()
        assert decode_answer(StoredAnswer(), question_type="checkbox") == Unanswered()

    def test_discriminated_union_parses_kind(self):
        adapter = TypeAdapter(AnswerValue)
        assert adapter.validate_python({"kind": "choice", "index": 1}) == ChoiceAnswer(index=1)
        assert adapter.validate_python({"kind": "unanswered"}) == Unanswered()
        with pytest.raises(ValidationError):
            adapter.validate_python({"kind": "choice", "index": -1})


class TestValidateAnswer:

    def test_choice_in_range(self):
        validate_answer(ChoiceAnswer(index=5), question_type="radio", options=SIX)

    def test_choice_out_of_range(self):
        with pytest.raises(SurveyValidationError):
            validate_answer(ChoiceAnswer(index=6), question_type="radio", options=SIX)

    def test_free_text_not_allowed_on_dropdown(self):
        with pytest.raises(SurveyValidationError):
            validate_answer(FreeTextAnswer(text="x"), question_type="dropdown", options=SIX)

    def test_checkbox_needs_indices(self):
        with pytest.raises(SurveyValidationError):
            validate_answer(MultiChoiceAnswer(indices=[]), question_type="checkbox", options=SIX)
        with pytest.raises(SurveyValidationError):
            validate_answer(MultiChoiceAnswer(indices=[0, 9]), question_type="checkbox", options=SIX)

    def test_scale_bounds(self):
        config = {"min": 1, "max": 5}
        validate_answer(ScaleAnswer(value=5), question_type="scale", options=[], scale_config=config)
        with pytest.raises(SurveyValidationError):
            validate_answer(ScaleAnswer(value=6), question_type="scale", options=[], scale_config=config)

    def test_text_kind_on_radio_rejected(self):
        with pytest.raises(SurveyValidationError):
            validate_answer(TextAnswer(text="x"), question_type="radio", options=SIX)
