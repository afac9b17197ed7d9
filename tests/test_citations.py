"""Citation marker resolution tests."""

from survey_engine.citations import resolve_citations, resolve_survey_citations
from survey_engine.prompt.manager import Participant, QAItem


def _item(index, statement, answer):
    return QAItem(index=index, statement=statement, answered=True, answer_text=answer)


def test_question_markers_resolve_in_first_occurrence_order():
    qa = [_item(1, "Work matters", "Yes"), _item(3, "Money matters", "No")]
    text = "You value work [Q1] more than money ［Q3］, see also [1] and [Q1]."
    cites = resolve_citations(text, qa)
    assert [c.marker for c in cites] == ["[Q1]", "［Q3］", "[1]"]
    assert cites[0].statement == "Work matters"
    assert cites[1].answer_text == "No"
    assert all(c.resolved for c in cites)


def test_unknown_index_is_unresolved():
    cites = resolve_citations("See [Q9].", [_item(1, "s", "a")])
    assert len(cites) == 1
    assert not cites[0].resolved


def test_survey_markers():
    participants = [
        Participant(user_number=1, qa=[_item(2, "Statement two", "Yes")]),
        Participant(user_number=4, qa=[_item(2, "Statement two", "No")]),
    ]
    cites = resolve_survey_citations("Split [U1-Q2] vs [U4Q2]; [U7-Q1].", participants)
    assert [(c.user_number, c.question_index) for c in cites] == [(1, 2), (4, 2), (7, 1)]
    assert cites[0].answer_text == "Yes"
    assert cites[1].answer_text == "No"
    assert not cites[2].resolved
