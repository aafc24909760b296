from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

REPO_ROOT = Path(__file__).resolve().parents[2]
ENV_FILE = REPO_ROOT / ".env"
PACKAGE_DIR = Path(__file__).resolve().parent

APP_VERSION = "4.3.0"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE), env_file_encoding="utf-8", extra="ignore"
    )

    # console logs instead of JSON
    DEBUG: bool = False

    # CORS allow origins (comma-separated). Default empty (no cross-origin).
    CORS_ALLOW_ORIGINS: str = ""

    # Curated venue dataset, loaded once at startup
    DATASET_PATH: Path | None = None

    # Conversations
    DEFAULT_LANGUAGE: Literal["es", "en"] = "es"
    SESSION_IDLE_SECONDS: int = 15 * 60
    SESSION_LOCK_SHARDS: int = 64
    # Conversations untouched for this long are dropped from memory
    SESSION_TTL_SECONDS: int = 24 * 60 * 60

    # OpenStreetMap services
    NOMINATIM_BASE_URL: str = "https://nominatim.openstreetmap.org"
    NOMINATIM_EMAIL: str = "remy@example.com"
    GEOCODER_TIMEOUT_SECONDS: float = 8.0
    OVERPASS_URL: str = "https://overpass-api.de/api/interpreter"
    OVERPASS_TIMEOUT_SECONDS: float = 30.0

    # Optional LLM slot extraction
    OPENAI_API_KEY: str | None = None
    OPENAI_API_BASE: str = "https://api.openai.com/v1"
    NLU_MODEL: str = "gpt-4o-mini"
    NLU_MODE: Literal["regex", "llm"] = "regex"
    OPENAI_TIMEOUT_SECONDS: float = 15.0
    OPENAI_CONNECT_TIMEOUT_SECONDS: float = 5.0

    # Circuit breakers guarding the external services
    CIRCUIT_FAILURE_THRESHOLD: int = 3
    CIRCUIT_COOLDOWN_SECONDS: float = 60.0

    # Observability
    SENTRY_DSN: str | None = None
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_RELEASE: str | None = None
    SENTRY_TRACES_SAMPLE_RATE: float = 0.2

    @property
    def allow_origins(self) -> list[str]:
        s = (self.CORS_ALLOW_ORIGINS or "").strip()
        if s == "*":
            return ["*"]
        if s == "":
            return []
        return [part.strip() for part in s.split(",") if part.strip()]

    @property
    def dataset_path(self) -> Path:
        # Blank values in `.env` come through as Path('.'); treat them as unset.
        if self.DATASET_PATH is not None:
            candidate = Path(self.DATASET_PATH).expanduser()
            if str(candidate).strip() not in {"", ".", "./"}:
                return candidate.resolve()
        return PACKAGE_DIR / "data" / "canonical_venues.json"

    @property
    def user_agent(self) -> str:
        return f"Remy-Chef/{APP_VERSION} ({self.NOMINATIM_EMAIL})"

    @property
    def llm_enabled(self) -> bool:
        return self.NLU_MODE == "llm" and bool((self.OPENAI_API_KEY or "").strip())


settings = Settings()
