"""Guided tutoring state machine.

A session is *guiding* until it has asked ``total_questions`` guiding
questions (or, under the early-final policy, until the model answers with
anything other than a question) and *concluding* afterwards. Concluding is not
terminal: every further message asks the model for a final answer again.

Bad model output never fails a request. While guiding, an unparseable, empty
or repeated question is replaced by a fixed fallback question; while
concluding, whatever text the model produced becomes the answer.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from tutor.core.memory import ASSISTANT, USER, Session, SessionStore
from tutor.core.prompt import build_final_prompt, build_guiding_prompt
from tutor.core.questions import (
    FALLBACK_QUESTIONS,
    GENERIC_FALLBACK,
    normalize_question,
    pick_fallback,
)
from tutor.core.reply import FinalReply, ParsedReply, QuestionReply, parse_reply
from tutor.errors import InvalidMessageError, ModelCallError, TutorError


logger = logging.getLogger(__name__)

TextGenerator = Callable[[str], Awaitable[str]]


@dataclass(frozen=True)
class QuestionResponse:
    session_id: str
    text: str
    questions_asked: int
    type: str = "question"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "type": self.type,
            "text": self.text,
            "questionsAsked": self.questions_asked,
        }


@dataclass(frozen=True)
class FinalResponse:
    session_id: str
    answer: str
    explanation: str = ""
    type: str = "final"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "type": self.type,
            "answer": self.answer,
            "explanation": self.explanation,
        }


TutorResponse = Union[QuestionResponse, FinalResponse]


class TutorEngine:
    def __init__(
        self,
        generate_text: TextGenerator,
        store: Optional[SessionStore] = None,
        total_questions: int = 3,
        early_final_concludes: bool = True,
        timeout: Optional[float] = None,
    ) -> None:
        self.generate_text = generate_text
        self.store = store if store is not None else SessionStore()
        self.total_questions = total_questions
        self.early_final_concludes = early_final_concludes
        self.timeout = timeout or None

    def is_guiding(self, session: Session) -> bool:
        return not session.concluded and session.questions_asked < self.total_questions

    async def ask(self, message: Any, session_id: Optional[str] = None) -> TutorResponse:
        if not isinstance(message, str) or not message:
            raise InvalidMessageError()

        session_id, session = self.store.get_or_create(session_id)
        async with session.lock:
            session.append(USER, message)

            guiding = self.is_guiding(session)
            if guiding:
                prompt = build_guiding_prompt(
                    session.history,
                    session.questions_asked,
                    session.asked,
                    total_questions=self.total_questions,
                )
            else:
                prompt = build_final_prompt(session.history, questions_asked=session.questions_asked)
            logger.info(
                "Session %s: %s prompt (%s chars, history_turns=%s)",
                session_id,
                "guiding" if guiding else "final",
                len(prompt),
                len(session.history),
            )

            raw = await self._generate(prompt)
            reply = parse_reply(raw)
            if guiding:
                return self._guide(session, reply)
            return self._conclude(session, reply, raw)

    def reset(self, session_id: Optional[str]) -> None:
        self.store.reset(session_id)

    async def _generate(self, prompt: str) -> str:
        try:
            if self.timeout is not None:
                return await asyncio.wait_for(self.generate_text(prompt), self.timeout)
            return await self.generate_text(prompt)
        except TutorError:
            raise
        except asyncio.TimeoutError as exc:
            logger.warning("Model call timed out after %ss", self.timeout)
            raise ModelCallError(f"Model call timed out after {self.timeout:g}s") from exc
        except Exception as exc:
            logger.exception("Model call failed: %s", exc)
            raise ModelCallError(str(exc) or type(exc).__name__) from exc

    def _guide(self, session: Session, reply: ParsedReply) -> TutorResponse:
        if isinstance(reply, QuestionReply):
            text = reply.text.strip()
            if not text:
                return self._fallback(session, "empty")
            key = normalize_question(text)
            if key in session.asked:
                return self._fallback(session, "duplicate")
            session.record_question(key, text)
            session.append(ASSISTANT, text)
            return QuestionResponse(session.session_id, text, session.questions_asked)

        if isinstance(reply, FinalReply):
            if self.early_final_concludes:
                session.concluded = True
                logger.info(
                    "Session %s concluded early after %s guiding questions",
                    session.session_id,
                    session.questions_asked,
                )
            return self._final(session, reply.answer, reply.explanation)

        return self._fallback(session, "unparseable")

    def _conclude(self, session: Session, reply: ParsedReply, raw: str) -> FinalResponse:
        if isinstance(reply, FinalReply):
            return self._final(session, reply.answer, reply.explanation)
        return self._final(session, raw, "")

    def _fallback(self, session: Session, reason: str) -> QuestionResponse:
        text = self._unused_fallback(session)
        logger.info(
            "Session %s: fallback question #%s (%s)",
            session.session_id,
            session.questions_asked + 1,
            reason,
        )
        session.record_question(normalize_question(text), text)
        session.append(ASSISTANT, text)
        return QuestionResponse(session.session_id, text, session.questions_asked)

    @staticmethod
    def _unused_fallback(session: Session) -> str:
        preferred = pick_fallback(session.questions_asked)
        if normalize_question(preferred) not in session.asked:
            return preferred
        for candidate in FALLBACK_QUESTIONS:
            if normalize_question(candidate) not in session.asked:
                return candidate
        return GENERIC_FALLBACK

    def _final(self, session: Session, answer: str, explanation: str) -> FinalResponse:
        session.append(ASSISTANT, answer)
        return FinalResponse(session.session_id, answer, explanation)
