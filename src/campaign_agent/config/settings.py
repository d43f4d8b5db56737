"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "campaign-agent"
    app_env: str = "dev"
    storage_backend: str = "postgres"
    database_url: str = ""
    oracle_mode: str = "llm"
    llm_model: str = "gpt-4o-mini"
    llm_base_url: str = "https://api.openai.com/v1"
    llm_timeout_s: float = Field(default=30.0, ge=0.5)
    openai_api_key: str = ""
    fetch_timeout_s: float = Field(default=10.0, ge=0.1)
    fetch_max_bytes: int = Field(default=1_000_000, ge=1)
    fetch_user_agent: str = "campaign-agent/0.1"
    step_interval_s: float = Field(default=0.05, ge=0.0)
    message_history_size: int = Field(default=500, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="CAMPAIGN_AGENT_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_database_url(self) -> str:
        return self.database_url or os.getenv("CAMPAIGN_DATABASE_URL", "")

    def resolved_openai_api_key(self) -> str:
        return self.openai_api_key or os.getenv("OPENAI_API_KEY", "")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
