"""Citation markers in generated reports.

Personal reports cite answers as ``[Q12]`` (models also write ``[12]``, and
full-width brackets ``［Q12］``); aggregate reports cite ``[U3-Q12]``.
Resolution maps each distinct marker to the question statement and the
answer label so a client can render inline references.
"""

import re
from typing import Optional

from pydantic import BaseModel

from survey_engine.prompt.manager import Participant, QAItem

_QUESTION_MARKER_RE = re.compile(r"(?:\[|［)Q?(\d+)(?:\]|］)")
_SURVEY_MARKER_RE = re.compile(r"(?:\[|［)U(\d+)-?Q(\d+)(?:\]|］)")


class Citation(BaseModel):
    marker: str
    question_index: int
    user_number: Optional[int] = None
    statement: Optional[str] = None
    answer_text: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.statement is not None


def resolve_citations(text: str, qa: list[QAItem]) -> list[Citation]:
    """Resolve ``[Q<n>]`` markers against one respondent's answers.

    Each distinct marker appears once, in order of first occurrence.
    Markers pointing at unknown indices are returned unresolved.
    """
    by_index = {item.index: item for item in qa}
    seen: set[str] = set()
    out: list[Citation] = []
    for match in _QUESTION_MARKER_RE.finditer(text):
        marker = match.group(0)
        if marker in seen:
            continue
        seen.add(marker)
        index = int(match.group(1))
        item = by_index.get(index)
        out.append(Citation(
            marker=marker,
            question_index=index,
            statement=item.statement if item else None,
            answer_text=item.answer_text if item else None,
        ))
    return out


def resolve_survey_citations(text: str, participants: list[Participant]) -> list[Citation]:
    """Resolve ``[U<n>-Q<m>]`` markers against every participant's answers."""
    lookup: dict[tuple[int, int], QAItem] = {
        (p.user_number, item.index): item
        for p in participants
        for item in p.qa
    }
    seen: set[str] = set()
    out: list[Citation] = []
    for match in _SURVEY_MARKER_RE.finditer(text):
        marker = match.group(0)
        if marker in seen:
            continue
        seen.add(marker)
        user_number, index = int(match.group(1)), int(match.group(2))
        item = lookup.get((user_number, index))
        out.append(Citation(
            marker=marker,
            question_index=index,
            user_number=user_number,
            statement=item.statement if item else None,
            answer_text=item.answer_text if item else None,
        ))
    return out
