"""Feedback Signal Detector configuration loaded from environment variables."""

from __future__ import annotations

import json
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./feedback.db",
        alias="DATABASE_URL",
    )
    auto_create_schema: bool = Field(default=True, alias="AUTO_CREATE_SCHEMA")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")
    cors_origins: str = Field(default='["*"]', alias="CORS_ORIGINS")
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    rate_limit: str = Field(default="100/minute", alias="RATE_LIMIT")

    # LLM sentiment classifier (keyword classifier used when no key is set)
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    llm_model: str = Field(default="gpt-4o-mini", alias="LLM_MODEL")
    llm_base_url: str = Field(default="https://api.openai.com/v1", alias="LLM_BASE_URL")
    llm_timeout_seconds: float = Field(default=15.0, alias="LLM_TIMEOUT_SECONDS")
    llm_max_tokens: int = Field(default=150, alias="LLM_MAX_TOKENS")
    use_mock_ml: bool = Field(default=False, alias="USE_MOCK_ML")
    sentiment_concurrency: int = Field(default=1, ge=1, alias="SENTIMENT_CONCURRENCY")

    # Analysis cache: memory, database or none
    cache_backend: str = Field(default="memory", alias="CACHE_BACKEND")

    # Demo data
    enable_demo_data: bool = Field(default=True, alias="ENABLE_DEMO_DATA")

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() in {"production", "prod"}

    @property
    def llm_enabled(self) -> bool:
        return bool(self.openai_api_key) and not self.use_mock_ml

    @property
    def cors_origins_list(self) -> list[str]:
        raw = (self.cors_origins or "").strip()
        if not raw:
            return []

        # Supports JSON list format and comma-separated format.
        if raw.startswith("["):
            try:
                parsed = json.loads(raw)
                if isinstance(parsed, list):
                    return [str(origin).strip() for origin in parsed if str(origin).strip()]
            except json.JSONDecodeError:
                pass

        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
