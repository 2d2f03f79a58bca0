"""
Pytest configuration and fixtures.

The text-generation model is replaced by a scripted async fake, so no test
talks to the network.
"""

import asyncio
import json
from typing import AsyncGenerator, List, Union

import pytest
from httpx import AsyncClient, ASGITransport

from app.main import app, get_engine
from config.settings import Settings, get_settings
from tutor.core.memory import SessionStore
from tutor.engine import TutorEngine


def question(text: str) -> str:
    return json.dumps({"type": "question", "text": text})


def final(answer: str, explanation: str = "") -> str:
    return json.dumps({"type": "final", "answer": answer, "explanation": explanation})


class ScriptedModel:
    """Async stand-in for ``generate_text`` that replays queued replies."""

    def __init__(self, *replies: Union[str, BaseException]):
        self.replies: List[Union[str, BaseException]] = list(replies)
        self.prompts: List[str] = []

    def queue(self, *replies: Union[str, BaseException]) -> None:
        self.replies.extend(replies)

    async def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        await asyncio.sleep(0)
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def model() -> ScriptedModel:
    return ScriptedModel()


@pytest.fixture
def store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def engine(model: ScriptedModel, store: SessionStore) -> TutorEngine:
    return TutorEngine(model, store=store)


@pytest.fixture
def api_settings(monkeypatch) -> Settings:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    return Settings()


@pytest.fixture
async def async_client(
    engine: TutorEngine, api_settings: Settings
) -> AsyncGenerator[AsyncClient, None]:
    """Async test client wired to the scripted engine."""
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_settings] = lambda: api_settings
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client
    app.dependency_overrides.clear()
