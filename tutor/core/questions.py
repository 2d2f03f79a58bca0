from __future__ import annotations

import re
from typing import Tuple


FALLBACK_QUESTIONS: Tuple[str, ...] = (
    "What is the exact goal you're trying to achieve?",
    "What have you tried so far, and what happened?",
    "What part feels most confusing right now?",
)

GENERIC_FALLBACK = "What detail would unlock the solution?"

_WHITESPACE = re.compile(r"\s+")


def normalize_question(text: str) -> str:
    """Canonical form of a question, used only for duplicate comparison."""
    return _WHITESPACE.sub(" ", (text or "").strip().lower())


def pick_fallback(questions_asked: int) -> str:
    """Deterministic substitute guiding question for the given slot."""
    if 0 <= questions_asked < len(FALLBACK_QUESTIONS):
        return FALLBACK_QUESTIONS[questions_asked]
    return GENERIC_FALLBACK
