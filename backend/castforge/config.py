from __future__ import annotations
"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """CastForge application settings.

    Loaded from environment variables or .env file.
    """

    # --- Application ---
    APP_NAME: str = "CastForge"
    DEBUG: bool = False
    CORS_ORIGINS: str = "*"  # comma-separated

    # --- Database (MySQL 8.0+ by default) ---
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = ""
    DB_NAME: str = "castforge"
    DB_URL: str = ""  # full SQLAlchemy async URL, overrides DB_* when set
    AUTO_CREATE_TABLES: bool = False

    @property
    def DATABASE_URL(self) -> str:
        """Async connection string; MySQL via asyncmy unless DB_URL is set."""
        if self.DB_URL:
            return self.DB_URL
        encoded_password = quote_plus(self.DB_PASSWORD)
        return (
            f"mysql+asyncmy://{self.DB_USER}:{encoded_password}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            "?charset=utf8mb4"
        )

    # --- Redis (job progress fan-out; empty disables publishing) ---
    REDIS_URL: str = "redis://localhost:6379/0"

    # --- LLM (OpenAI-compatible chat completions) ---
    LLM_BASE_URL: str = "https://openrouter.ai/api/v1"
    LLM_API_KEY: str = ""
    LLM_API_KEYS: str = ""  # comma-separated pool, takes precedence
    SCRIPT_MODEL: str = "google/gemini-2.5-flash"
    PROMPT_MODEL: str = "openai/gpt-4o-mini"
    LLM_TIMEOUT: int = 120
    LLM_MAX_RETRIES: int = 3
    SCRIPT_LANGUAGE: str = "German"

    # --- ElevenLabs (text-to-speech) ---
    ELEVENLABS_API_KEY: str = ""
    ELEVENLABS_BASE_URL: str = "https://api.elevenlabs.io/v1"
    ELEVENLABS_MODEL: str = "eleven_multilingual_v2"
    ELEVENLABS_DEFAULT_VOICE: str = "JBFqnCBsd6RMkjVDRZzb"

    # --- JoggAI (avatar video) ---
    JOGGAI_API_KEY: str = ""
    JOGGAI_BASE_URL: str = "https://api.jogg.ai/v2"

    # --- KIE AI (Kling / Runway video) ---
    KIE_API_KEY: str = ""
    KIE_BASE_URL: str = "https://api.kie.ai"

    # --- Tavus (replica video) ---
    TAVUS_API_KEY: str = ""
    TAVUS_BASE_URL: str = "https://tavusapi.com/v2"

    # --- Replicate (image + video diffusion) ---
    REPLICATE_API_KEY: str = ""
    REPLICATE_BASE_URL: str = "https://api.replicate.com/v1"

    # --- Proxy relay ---
    RELAY_TIMEOUT: float = 60.0
    RELAY_SNIPPET_CHARS: int = 500

    # --- Job poller ---
    POLL_MAX_ATTEMPTS: int = 120
    POLL_INTERVAL_SECONDS: float = 5.0

    # --- Job registry (in-memory records of API-started jobs) ---
    JOB_RETENTION_SECONDS: float = 3600.0  # finished records older than this are dropped
    JOB_MAX_RECORDS: int = 500

    # --- Webhook (n8n or any HTTP endpoint) ---
    WEBHOOK_ENABLED: bool = False
    WEBHOOK_URL: str = ""
    WEBHOOK_TIMEOUT: float = 10.0

    # --- Google Drive export (OAuth refresh-token flow; empty disables) ---
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_REFRESH_TOKEN: str = ""
    GOOGLE_TOKEN_URL: str = "https://oauth2.googleapis.com/token"
    GOOGLE_DRIVE_UPLOAD_URL: str = "https://www.googleapis.com/upload/drive/v3/files"
    EXPORT_TIMEOUT: float = 300.0

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
