"""Application configuration settings."""
from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Runtime toggles -----------------------------------------------------
# Execution environment: "dev" | "test" | "staging" | "prod"
ENV = os.getenv("GIGPAY_ENV", "dev").lower()

# Devnet USDC mint, used by the default settlement configuration.
DEVNET_USDC_MINT = "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU"


class Settings(BaseSettings):
    """Environment configuration for the GigPay backend."""

    app_env: str = ENV
    database_url: str = "sqlite:///gigpay.db"
    SECRET_KEY: str = "change-me"
    CORS_ALLOW_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]
    SENTRY_DSN: str | None = None
    PROMETHEUS_ENABLED: bool = False
    ALLOW_DB_CREATE_ALL: bool = False

    # --- Sessions ----------------------------------------------------------
    SESSION_TOKEN_TTL_DAYS: int = Field(default=30, ge=1)

    # --- Maintenance scheduler -------------------------------------------
    SCHEDULER_ENABLED: bool = False

    # --- x402 settlement -------------------------------------------------
    FACILITATOR_URL: str = "https://facilitator.payai.network"
    FACILITATOR_TIMEOUT_SECONDS: float = Field(default=15.0, gt=0)
    ESCROW_WALLET_ADDRESS: str | None = None
    X402_VERSION: int = 1
    SETTLEMENT_SCHEME: str = "exact"
    SETTLEMENT_NETWORK: str = "solana-devnet"
    SETTLEMENT_ASSET: str = DEVNET_USDC_MINT
    SETTLEMENT_ASSET_DECIMALS: int = Field(default=6, ge=0, le=18)
    PAYMENT_CHALLENGE_TIMEOUT_SECONDS: int = Field(default=300, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("ESCROW_WALLET_ADDRESS", "SENTRY_DSN")
    @classmethod
    def _strip_empty(cls, value: str | None) -> str | None:
        """Normalise blank optional strings to ``None``."""

        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @field_validator("FACILITATOR_URL")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class AppInfo(BaseModel):
    name: str = "gigpay-backend"
    version: str = "0.1.0"


settings = Settings()


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return settings


__all__ = [
    "ENV",
    "DEVNET_USDC_MINT",
    "Settings",
    "AppInfo",
    "settings",
    "get_settings",
]
