"""
Test the HTTP surface end-to-end against a scripted model.
"""

import pytest
from httpx import AsyncClient

from app.main import app
from config.settings import Settings, get_settings
from tests.conftest import final, question
from tutor.core.questions import FALLBACK_QUESTIONS


@pytest.mark.asyncio
class TestServiceEndpoints:

    async def test_health(self, async_client: AsyncClient):
        response = await async_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"ok": True}

    async def test_root_banner(self, async_client: AsyncClient):
        response = await async_client.get("/")
        assert response.status_code == 200
        assert "POST /api/ask" in response.text


@pytest.mark.asyncio
class TestAsk:

    async def test_guiding_then_final(self, async_client: AsyncClient, model):
        model.queue(
            question("What is a base case?"),
            question("What changes between calls?"),
            question("When does it stop?"),
            final("A function that calls itself.", "Each call works on a smaller input."),
        )

        response = await async_client.post("/api/ask", json={"message": "explain recursion"})
        assert response.status_code == 200
        data = response.json()
        session_id = data["sessionId"]
        assert data == {
            "sessionId": session_id,
            "type": "question",
            "text": "What is a base case?",
            "questionsAsked": 1,
        }

        for expected in (2, 3):
            response = await async_client.post(
                "/api/ask", json={"sessionId": session_id, "message": "my answer"}
            )
            assert response.json()["questionsAsked"] == expected

        response = await async_client.post(
            "/api/ask", json={"sessionId": session_id, "message": "done"}
        )
        assert response.status_code == 200
        assert response.json() == {
            "sessionId": session_id,
            "type": "final",
            "answer": "A function that calls itself.",
            "explanation": "Each call works on a smaller input.",
        }

    async def test_unparseable_reply_falls_back(self, async_client: AsyncClient, model):
        model.queue("Sure! Let me think about that.")
        response = await async_client.post("/api/ask", json={"message": "explain recursion"})
        assert response.status_code == 200
        assert response.json()["text"] == FALLBACK_QUESTIONS[0]

    @pytest.mark.parametrize(
        "body",
        [{}, {"message": ""}, {"message": 42}, {"message": None}, {"sessionId": "x"}],
    )
    async def test_bad_message(self, async_client: AsyncClient, engine, model, body):
        response = await async_client.post("/api/ask", json=body)
        assert response.status_code == 400
        assert response.json()["error"] == "Bad request"
        assert len(engine.store) == 0
        assert model.prompts == []

    async def test_missing_body(self, async_client: AsyncClient):
        response = await async_client.post("/api/ask")
        assert response.status_code == 400
        assert set(response.json()) == {"error", "message"}

    async def test_invalid_json(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/ask", content=b"{not json", headers={"content-type": "application/json"}
        )
        assert response.status_code == 400

    async def test_non_string_session_id_starts_new_session(self, async_client: AsyncClient, model):
        model.queue(question("What is a base case?"))
        response = await async_client.post(
            "/api/ask", json={"sessionId": 123, "message": "explain recursion"}
        )
        assert response.status_code == 200
        assert response.json()["sessionId"] != "123"

    async def test_model_failure(self, async_client: AsyncClient, model):
        model.queue(RuntimeError("upstream exploded"))
        response = await async_client.post("/api/ask", json={"message": "explain recursion"})
        assert response.status_code == 500
        assert response.json() == {"error": "Model call failed", "message": "upstream exploded"}

    async def test_missing_api_key(self, async_client: AsyncClient, model, monkeypatch):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
        keyless = Settings()
        app.dependency_overrides[get_settings] = lambda: keyless

        response = await async_client.post("/api/ask", json={"message": "explain recursion"})
        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Configuration error"
        assert "GEMINI_API_KEY" in body["message"]
        assert model.prompts == []


@pytest.mark.asyncio
class TestReset:

    async def test_reset_is_idempotent(self, async_client: AsyncClient, model):
        model.queue(question("What is a base case?"), question("What is a base case?"))
        first = (await async_client.post("/api/ask", json={"message": "explain recursion"})).json()

        for _ in range(2):
            response = await async_client.post("/api/reset", json={"sessionId": first["sessionId"]})
            assert response.status_code == 200
            assert response.json() == {"ok": True}

        again = (
            await async_client.post(
                "/api/ask", json={"sessionId": first["sessionId"], "message": "explain recursion"}
            )
        ).json()
        assert again["sessionId"] != first["sessionId"]
        assert again["questionsAsked"] == 1
        assert again["text"] == "What is a base case?"

    @pytest.mark.parametrize("kwargs", [{}, {"json": {}}, {"json": {"sessionId": "unknown"}}])
    async def test_reset_without_known_session(self, async_client: AsyncClient, kwargs):
        response = await async_client.post("/api/reset", **kwargs)
        assert response.status_code == 200
        assert response.json() == {"ok": True}

    @pytest.mark.parametrize("body", [["x"], "abc", 5, None, True])
    async def test_reset_accepts_any_json_body(self, async_client: AsyncClient, engine, body):
        session_id, _ = engine.store.get_or_create()
        response = await async_client.post("/api/reset", json=body)
        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert session_id in engine.store

    async def test_reset_ignores_non_string_session_id(self, async_client: AsyncClient, engine):
        session_id, _ = engine.store.get_or_create()
        response = await async_client.post("/api/reset", json={"sessionId": [session_id]})
        assert response.json() == {"ok": True}
        assert session_id in engine.store

    async def test_reset_removes_named_session(self, async_client: AsyncClient, engine):
        session_id, _ = engine.store.get_or_create()
        response = await async_client.post("/api/reset", json={"sessionId": session_id})
        assert response.json() == {"ok": True}
        assert session_id not in engine.store

    async def test_reset_rejects_invalid_json(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/reset", content=b"{not json", headers={"content-type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json() == {
            "error": "Bad request",
            "message": "Expected a JSON body: { sessionId?: string }",
        }
