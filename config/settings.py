from __future__ import annotations

import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv


load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here. Values are read when the
    instance is created, so `get_settings.cache_clear()` picks up env changes.
    """

    def __init__(self) -> None:
        self.app_env: str = os.getenv("APP_ENV", "development")
        self.gemini_api_key: Optional[str] = (
            os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY") or None
        )
        self.gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-flash-latest")
        self.temperature: float = float(os.getenv("MODEL_TEMPERATURE", "0.3"))
        self.top_p: float = float(os.getenv("MODEL_TOP_P", "0.9"))
        self.model_timeout: float = float(os.getenv("MODEL_TIMEOUT_SECONDS", "30"))
        self.guiding_questions: int = _env_int("GUIDING_QUESTIONS", 3)
        self.early_final_concludes: bool = _env_bool("EARLY_FINAL_CONCLUDES", True)
        # 0 disables the bound
        self.session_ttl_seconds: float = float(os.getenv("SESSION_TTL_SECONDS", "0"))
        self.max_sessions: int = _env_int("MAX_SESSIONS", 0)
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.cors_origins: str = os.getenv("CORS_ORIGINS", "*")
        self.host: str = os.getenv("HOST", "127.0.0.1")
        self.port: int = _env_int("PORT", 3001)

    @property
    def is_development(self) -> bool:
        return self.app_env.lower() in {"dev", "development", "local"}

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
