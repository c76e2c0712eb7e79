"""Application settings loaded from environment variables (or a local .env)."""
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    db_name: str = Field(default="contacts.db", description="SQLite database file, or :memory:")

    app_title: str = Field(default="Bitespeed Contact Reconciliation API")
    app_version: str = Field(default="1.0.0")

    cors_origins: List[str] = Field(default=["*"], description="Origins allowed by CORS, JSON list in env")

    log_level: str = Field(default="INFO")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)


@lru_cache
def get_settings() -> Settings:
    return Settings()
