"""Version / status ledger tests."""

from survey_db.models.enums import SurveyReportStatus
from survey_engine.ledger import can_transition, next_version


def test_next_version_empty():
    assert next_version([]) == 1


def test_next_version_is_max_plus_one():
    assert next_version([3, 1, 2]) == 4


def test_next_version_ignores_none():
    assert next_version([None]) == 1


def test_only_generating_moves_to_terminal():
    assert can_transition(SurveyReportStatus.GENERATING, SurveyReportStatus.COMPLETED)
    assert can_transition(SurveyReportStatus.GENERATING, SurveyReportStatus.FAILED)
    assert not can_transition(SurveyReportStatus.COMPLETED, SurveyReportStatus.FAILED)
    assert not can_transition(SurveyReportStatus.GENERATING, SurveyReportStatus.GENERATING)
