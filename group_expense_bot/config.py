from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    bot_token: str = Field(..., alias="BOT_TOKEN")
    database_url: str = Field(..., alias="DATABASE_URL")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    sql_echo: bool = Field(False, alias="SQL_ECHO")
    # Create tables on startup instead of running alembic (local runs only).
    auto_create_tables: bool = Field(False, alias="AUTO_CREATE_TABLES")

    dashboard_debounce_seconds: float = Field(2.0, alias="DASHBOARD_DEBOUNCE_SECONDS")
    reply_ttl_seconds: float = Field(120.0, alias="REPLY_TTL_SECONDS")
    history_limit: int = Field(10, ge=1, le=50, alias="HISTORY_LIMIT")

    currency_symbol: str = Field("₹", alias="CURRENCY_SYMBOL")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
