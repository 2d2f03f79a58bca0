from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from langchain_core.prompts import PromptTemplate

from tutor.core.memory import Turn


SYSTEM_PROMPT = "You are a patient tutor who helps a student reason toward the answer."

GUIDING_PROMPT = PromptTemplate.from_template(
    """{system_prompt}
You MUST ask exactly ONE guiding question.
Rules:
- Do NOT give the final answer.
- Do NOT give multiple questions.
- Keep it short and specific.
- Do NOT repeat a previous question.
- Your goal is to ask question #{question_number} of {total_questions}.

Previous questions asked:
{previous_questions}

Return ONLY valid JSON like:
{{"type":"question","text":"...one question..."}}

Transcript so far:
{transcript}
"""
)

FINAL_PROMPT = PromptTemplate.from_template(
    """{system_prompt}
The student has answered {questions_asked} guiding questions.
Now give the final answer clearly, with a short explanation.

Return ONLY valid JSON like:
{{"type":"final","answer":"...","explanation":"..."}}

Transcript:
{transcript}
"""
)


def render_transcript(history: Sequence[Turn]) -> str:
    return "\n".join(f"{turn.role.upper()}: {turn.content}" for turn in history)


def _render_asked(asked: Iterable[str]) -> str:
    lines = [f"- {question}" for question in asked]
    return "\n".join(lines) or "(none)"


def build_guiding_prompt(
    history: Sequence[Turn],
    questions_asked: int,
    asked: Mapping[str, str],
    total_questions: int = 3,
) -> str:
    """Prompt asking for guiding question number ``questions_asked + 1``.

    ``asked`` maps normalized question keys to the text as it was shown to the
    learner; the original text is what the model sees.
    """
    return GUIDING_PROMPT.format(
        system_prompt=SYSTEM_PROMPT,
        question_number=questions_asked + 1,
        total_questions=total_questions,
        previous_questions=_render_asked(asked.values()),
        transcript=render_transcript(history),
    )


def build_final_prompt(history: Sequence[Turn], questions_asked: int = 3) -> str:
    return FINAL_PROMPT.format(
        system_prompt=SYSTEM_PROMPT,
        questions_asked=questions_asked,
        transcript=render_transcript(history),
    )
