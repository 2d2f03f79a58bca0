"""Interpretation of raw model text.

Models tend to wrap the requested JSON object in prose or code fences, so the
parser takes the span from the first ``{`` to the last ``}`` and decodes that.
Anything decoded whose ``type`` is not exactly ``"question"`` is read as a
final answer; this keeps a confused model from holding a learner in the
guiding phase forever.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union


@dataclass(frozen=True)
class QuestionReply:
    text: str


@dataclass(frozen=True)
class FinalReply:
    answer: str
    explanation: str = ""


@dataclass(frozen=True)
class UnparseableReply:
    raw_text: str


ParsedReply = Union[QuestionReply, FinalReply, UnparseableReply]


def _extract_json_segment(text: str) -> Optional[str]:
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end < start:
        return None
    return text[start: end + 1]


def _text_field(data: Dict[str, Any], key: str) -> str:
    # Non-string values count as missing so they never reach the learner.
    value = data.get(key)
    return value if isinstance(value, str) else ""


def parse_reply(raw_text: str) -> ParsedReply:
    raw_text = raw_text or ""
    segment = _extract_json_segment(raw_text)
    if segment is None:
        return UnparseableReply(raw_text)

    try:
        data = json.loads(segment)
    except json.JSONDecodeError:
        return UnparseableReply(raw_text)
    if not isinstance(data, dict):
        return UnparseableReply(raw_text)

    if data.get("type") == "question":
        return QuestionReply(text=_text_field(data, "text"))
    return FinalReply(
        answer=_text_field(data, "answer"),
        explanation=_text_field(data, "explanation"),
    )
