# medassist/config.py
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    database_url: str = Field(..., validation_alias="DATABASE_URL")

    openai_api_key: str = Field(..., validation_alias="OPENAI_API_KEY")
    openai_base_url: str | None = Field(None, validation_alias="OPENAI_BASE_URL")
    llm_model: str = Field("gpt-4o-mini", validation_alias="LLM_MODEL")
    llm_temperature: float = Field(0.4, validation_alias="LLM_TEMPERATURE")
    llm_timeout_seconds: float = Field(60.0, validation_alias="LLM_TIMEOUT_SECONDS")
    llm_max_retries: int = Field(0, validation_alias="LLM_MAX_RETRIES")

    db_max_attempts: int = Field(3, validation_alias="DB_MAX_ATTEMPTS")
    db_retry_delay_seconds: float = Field(1.0, validation_alias="DB_RETRY_DELAY_SECONDS")

    chat_context_messages: int = Field(10, validation_alias="CHAT_CONTEXT_MESSAGES")
    max_upload_mb: int = Field(10, validation_alias="MAX_UPLOAD_MB")

    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")
    cors_origins: List[str] = Field(["*"], validation_alias="CORS_ORIGINS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
