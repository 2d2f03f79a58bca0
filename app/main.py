from __future__ import annotations

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
import logging
import uvicorn
from pydantic import BaseModel, ConfigDict, Field, field_validator

from config.settings import Settings, get_settings
from tutor.agent import GeminiTextGenerator, require_api_key
from tutor.core.memory import SessionStore
from tutor.engine import TutorEngine
from tutor.errors import InvalidMessageError, TutorError


settings = get_settings()

logging.basicConfig(level=settings.log_level, format="[%(asctime)s] %(levelname)s - %(message)s")
logger = logging.getLogger("guided_tutor")


@lru_cache(maxsize=1)
def get_engine() -> TutorEngine:
    settings = get_settings()
    generator = GeminiTextGenerator(settings)
    store = SessionStore(
        ttl_seconds=settings.session_ttl_seconds,
        max_sessions=settings.max_sessions,
    )
    return TutorEngine(
        generator.generate_text,
        store=store,
        total_questions=settings.guiding_questions,
        early_final_concludes=settings.early_final_concludes,
        timeout=settings.model_timeout,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logger.info(
        "Config: env=%s model=%s key_set=%s guiding_questions=%s early_final_concludes=%s",
        settings.app_env,
        settings.gemini_model,
        bool(settings.gemini_api_key),
        settings.guiding_questions,
        settings.early_final_concludes,
    )
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; /api/ask will answer 500 until it is configured")
    yield


app = FastAPI(title="Guided Tutor", version="1.0.0", lifespan=lifespan)

# CORS: allow local frontend during development
if settings.is_development:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _string_or_none(value: Any) -> Optional[str]:
    # A non-string id is treated as absent so that a fresh session is issued.
    return value if isinstance(value, str) and value else None


class AskRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId")
    # Validated by the engine so a missing key is reported before a bad message.
    message: Any = Field(default=None, description="Learner's latest message")

    @field_validator("session_id", mode="before")
    @classmethod
    def _coerce_session_id(cls, value: Any) -> Optional[str]:
        return _string_or_none(value)


@app.exception_handler(TutorError)
async def tutor_error_handler(request: Request, exc: TutorError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Rejected request to %s: %s", request.url.path, exc.errors())
    if request.url.path == "/api/reset":
        error = InvalidMessageError("Expected a JSON body: { sessionId?: string }")
    else:
        error = InvalidMessageError()
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": str(exc) or type(exc).__name__},
    )


@app.get("/", response_class=PlainTextResponse)
def root() -> str:
    return "Backend is running. Try /health or POST /api/ask"


@app.get("/health")
def health() -> Dict[str, Any]:
    return {"ok": True}


@app.post("/api/ask")
async def ask(
    req: AskRequest,
    settings: Settings = Depends(get_settings),
    engine: TutorEngine = Depends(get_engine),
) -> Dict[str, Any]:
    require_api_key(settings)

    logger.info(
        "Incoming ask: session_id=%s message_len=%s",
        req.session_id,
        len(req.message) if isinstance(req.message, str) else None,
    )
    try:
        response = await engine.ask(req.message, req.session_id)
    except TutorError as exc:
        logger.warning("Ask failed (%s): %s", exc.error, exc.message)
        raise

    logger.info("Responded with %s for session %s", response.type, response.session_id)
    return response.to_dict()


@app.post("/api/reset")
async def reset(
    body: Any = Body(default=None),
    engine: TutorEngine = Depends(get_engine),
) -> Dict[str, Any]:
    # Any JSON body is accepted; only an object can name a session.
    session_id = _string_or_none(body.get("sessionId")) if isinstance(body, dict) else None
    engine.reset(session_id)
    return {"ok": True}


if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port)
