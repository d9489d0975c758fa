"""
Application configuration loaded from environment variables.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Frontend URL for CORS
    frontend_url: str = "http://localhost:3000"

    # Gemini AI
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash-lite"
    gemini_fallback_models: list[str] = ["gemini-flash-latest", "gemini-2.0-flash"]
    gemini_timeout_seconds: float = 30.0
    analysis_language: str = "English"

    # Session
    session_secret: str = "dev-secret-change-in-production"
    session_expire_hours: int = 24

    # Debug mode / logging
    debug: bool = True
    log_level: str = ""

    # Analysis cache (durable local store)
    analysis_cache_path: str = ".cache/analyses.json"

    # Gmail fetch limits
    metadata_fetch_limit: int = 50
    full_fetch_chunk_size: int = 20
    full_fetch_pause_seconds: float = 0.1
    full_fetch_request_limit: int = 20
    legacy_fetch_count: int = 10
    default_metadata_count: int = 100

    # Triage
    prewarm_window: int = 10
    triage_page_size: int = 50

    @property
    def gemini_models(self) -> list[str]:
        """Preferred model first, then fallbacks without duplicates."""
        models = [self.gemini_model]
        for name in self.gemini_fallback_models:
            if name not in models:
                models.append(name)
        return models


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
