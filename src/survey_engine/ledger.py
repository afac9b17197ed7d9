"""Version and status ledger for personal reports and aggregate reports.

Versions are derived, never stored as a running counter: the next version
is always ``max(existing) + 1``.  The same function serves both owner scopes
(a session's reports and a preset's survey reports).

Aggregate reports additionally carry a status::

    generating ──(model ok)──▶ completed
        │
        └──(model error)──▶ failed
"""

from typing import Iterable

from survey_db.models.enums import SurveyReportStatus

__all__ = ["SurveyReportStatus", "can_transition", "next_version"]


def next_version(existing_versions: Iterable[int | None]) -> int:
    """Return the version to write next for one owner.

    >>> next_version([])
    1
    >>> next_version([3, 2, 1])
    4
    """
    versions = [v for v in existing_versions if v is not None]
    return max(versions) + 1 if versions else 1


def can_transition(current: SurveyReportStatus, target: SurveyReportStatus) -> bool:
    """Only ``generating`` may move, and only to a terminal status."""
    return current is SurveyReportStatus.GENERATING and target.is_terminal
