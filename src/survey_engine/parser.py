"""Defensive extraction of JSON payloads from free-form model output.

Models wrap JSON in code fences, add prose around it, and occasionally emit
trailing commas.  Parsing runs a fixed sequence of attempts and then fails
closed:

  1. fenced block (```json ... ``` or ``` ... ```), else first ``{`` .. last ``}``
  2. ``json.loads``
  3. one repair pass (trailing commas, missing comma between ``}{``), retry

Nothing in this module raises on bad model text; callers get ``None`` and
convert it into a :class:`~survey_engine.errors.GenerationError`.
"""

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from survey_engine.models.question import GeneratedQuestion

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_ADJACENT_OBJECTS_RE = re.compile(r"}\s*{")


def extract_json_payload(text: str | None) -> str | None:
    """Return the JSON-looking span of ``text``, or ``None``."""
    if not text:
        return None

    match = _FENCE_RE.search(text)
    if match:
        inner = match.group(1).strip()
        if inner:
            return inner

    first = text.find("{")
    last = text.rfind("}")
    if first != -1 and last > first:
        return text[first : last + 1]
    return None


def normalize_json_payload(raw: str) -> str:
    """Apply the bounded set of textual repairs."""
    repaired = _TRAILING_COMMA_RE.sub(r"\1", raw)
    return _ADJACENT_OBJECTS_RE.sub("},{", repaired)


def parse_json_payload(text: str | None) -> Any | None:
    """Extract and decode a JSON payload; ``None`` if every attempt fails."""
    payload = extract_json_payload(text)
    if payload is None:
        return None
    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        pass
    try:
        return json.loads(normalize_json_payload(payload))
    except json.JSONDecodeError as exc:
        logger.debug("JSON repair failed: %s", exc)
        return None


def parse_generated_questions(text: str | None) -> list[GeneratedQuestion] | None:
    """Parse a ``{"questions": [...]}`` payload.

    Returns ``None`` when the payload is missing, the list is empty, or any
    single item fails validation: every index of a batch must come from
    the same well-formed model response.
    """
    data = parse_json_payload(text)
    if not isinstance(data, dict):
        return None
    items = data.get("questions")
    if not isinstance(items, list) or not items:
        return None
    try:
        return [GeneratedQuestion.model_validate(item) for item in items]
    except ValidationError as exc:
        logger.warning("Generated question failed validation: %s", exc.errors()[:1])
        return None


def parse_string_field(text: str | None, *keys: str) -> str | None:
    """Return the first non-empty string under any of ``keys``."""
    data = parse_json_payload(text)
    if not isinstance(data, dict):
        return None
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def parse_string_list(text: str | None, *keys: str) -> list[str] | None:
    """Return the first non-empty list of strings under any of ``keys``."""
    data = parse_json_payload(text)
    if not isinstance(data, dict):
        return None
    for key in keys:
        value = data.get(key)
        if isinstance(value, list):
            items = [v.strip() for v in value if isinstance(v, str) and v.strip()]
            if items:
                return items
    return None
