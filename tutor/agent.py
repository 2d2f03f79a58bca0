from __future__ import annotations

import logging
from typing import Any, Optional

from langchain_core.messages import BaseMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from config.settings import Settings, get_settings
from tutor.errors import ConfigurationError


logger = logging.getLogger(__name__)


def require_api_key(settings: Settings) -> str:
    if not settings.gemini_api_key:
        raise ConfigurationError(
            "GEMINI_API_KEY not loaded on server. Please configure it in environment or .env"
        )
    return settings.gemini_api_key


def build_llm(settings: Optional[Settings] = None) -> ChatGoogleGenerativeAI:
    settings = settings or get_settings()
    api_key = require_api_key(settings)

    return ChatGoogleGenerativeAI(
        model=settings.gemini_model,
        google_api_key=api_key,
        temperature=settings.temperature,
        top_p=settings.top_p,
    )


def message_text(message: Any) -> str:
    """Flatten a chat model reply into plain text."""
    content = message.content if isinstance(message, BaseMessage) else message
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type", "text") == "text":
                parts.append(str(part.get("text") or ""))
        return "".join(parts)
    return "" if content is None else str(content)


class GeminiTextGenerator:
    """``generate_text(prompt) -> text`` backed by a Gemini chat model.

    The client is built on first use so that a missing key is reported per
    request instead of at import time.
    """

    def __init__(self, settings: Optional[Settings] = None, llm: Any = None) -> None:
        self.settings = settings or get_settings()
        self._llm = llm

    @property
    def llm(self) -> Any:
        if self._llm is None:
            self._llm = build_llm(self.settings)
            logger.info("Gemini client ready: model=%s", self.settings.gemini_model)
        return self._llm

    async def generate_text(self, prompt: str) -> str:
        reply = await self.llm.ainvoke(prompt)
        return message_text(reply)
