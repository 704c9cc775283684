"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. Secrets (SECRET_KEY) stay out of source code.

Precedence:
  1. Environment variables (highest priority)
  2. .env file values
  3. Defaults defined here (lowest priority)

Usage:
    from canteen.config import settings
    print(settings.DATABASE_URL)
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the Canteen API.

    Required fields (no defaults) MUST be set in .env or environment:
      - SECRET_KEY: Used to sign JWT tokens
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Canteen API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # --- Database ---
    # SQLite for local use; a postgresql+asyncpg:// URL for production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/canteen.db"
    # Seconds a SQLite writer waits for another writer's transaction to finish
    SQLITE_BUSY_TIMEOUT: float = 30.0

    # --- Authentication ---
    # REQUIRED: No default, forces the deployer to set a real secret
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "console"

    # --- Checkout rules ---
    # Reject checkouts whose client-side unit price no longer matches the menu
    REVALIDATE_PRICES: bool = True
    # Read-then-write stock decrement for stores without transactions.
    # Not safe under concurrent checkouts; leave off unless the store is degraded.
    UNSAFE_STOCK_FALLBACK: bool = False
    PREORDER_MAX_DAYS_AHEAD: int = 7
    PREORDER_WEEKDAYS_ONLY: bool = True

    # --- Reports ---
    # Items sold this month with stock at or below this are flagged for restock
    LOW_STOCK_THRESHOLD: int = 5

    # --- CORS ---
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
