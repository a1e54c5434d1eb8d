# settings.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Literal



class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    ENV: Literal["dev", "staging", "prod"] = "dev"
    LOG_LEVEL: str = "INFO"

    # -----------------------
    # DB
    # -----------------------
    DATABASE_URL: str = Field(default="")
    DB_POOL_MAX: int = 10
    # Per-statement cap so one slow row cannot stall a pass
    DB_STATEMENT_TIMEOUT_MS: int = 5000

    # -----------------------
    # External ledger provider
    # -----------------------
    LEDGER_API_BASE_URL: str = "https://northwind.dev.array.io/api/v1"
    LEDGER_API_KEY: str = ""
    LEDGER_HTTP_TIMEOUT_S: float = 10.0

    # -----------------------
    # Regulator webhook
    # -----------------------
    # Empty URL => deliveries are treated as sent (no-op sink)
    REGULATOR_WEBHOOK_URL: str = ""
    REGULATOR_WEBHOOK_API_KEY: str = ""
    REGULATOR_HTTP_TIMEOUT_S: float = 15.0

    # -----------------------
    # Worker cadence
    # -----------------------
    MONITOR_INTERVAL_SECONDS: int = 60
    DISPATCH_INTERVAL_SECONDS: int = 30
    PASS_TIMEOUT_SECONDS: float = 240.0

    # -----------------------
    # Admin
    # -----------------------
    ADMIN_API_KEY: str = ""


settings = Settings()


def validate_env_settings() -> None:
    """
    Fail fast outside dev when required values are missing.
    Dev tolerates everything so tests and local runs stay simple.
    """
    env = (settings.ENV or "dev").strip().lower()
    if env == "dev":
        return

    missing: list[str] = []
    if not (settings.DATABASE_URL or "").strip():
        missing.append("DATABASE_URL")
    if not (settings.LEDGER_API_BASE_URL or "").strip():
        missing.append("LEDGER_API_BASE_URL")
    if not (settings.LEDGER_API_KEY or "").strip():
        missing.append("LEDGER_API_KEY")
    if not (settings.ADMIN_API_KEY or "").strip():
        missing.append("ADMIN_API_KEY")

    # A prod deployment without a regulator endpoint would silently mark every notification sent
    if env == "prod" and not (settings.REGULATOR_WEBHOOK_URL or "").strip():
        missing.append("REGULATOR_WEBHOOK_URL")

    if missing:
        raise RuntimeError(f"Missing required settings for ENV={env}: {', '.join(missing)}")
