"""
Configuration Management for the Expense Ledger

Typed settings read from environment variables (and `.env` for the
application block) with pydantic-settings.

DESIGN DECISION: Every tunable lives here. Database settings use the
LEDGER_DB_ prefix; application settings are unprefixed.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Scale of the stored amount column; amounts never carry more places than this
AMOUNT_SCALE = 2


class DatabaseSettings(BaseSettings):
    """Transactional store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_DB_",
        extra="ignore"
    )

    url: str = Field(
        default="sqlite:///./expense_ledger.db",
        description="SQLAlchemy database URL"
    )
    echo: bool = Field(
        default=False,
        description="Log every SQL statement"
    )
    pool_size: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Connection pool size (ignored for SQLite)"
    )
    create_schema: bool = Field(
        default=True,
        description="Create missing tables when connecting"
    )

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


class AppSettings(BaseSettings):
    """
    Ledger behaviour and logging.

    Read from the environment, then the .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Minimum log level"
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (console rendering otherwise)"
    )

    # Request validation
    max_description_length: int = Field(
        default=255,
        ge=1,
        le=10000,
        description="Maximum expense description length"
    )
    amount_decimal_places: int = Field(
        default=AMOUNT_SCALE,
        ge=0,
        le=AMOUNT_SCALE,
        description="Maximum number of decimal places in an amount"
    )

    # Aggregation scope
    scope_aggregation_to_owner: bool = Field(
        default=True,
        description="Sum only the caller's expenses (False sums every owner's)"
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Root settings object.

    Each property builds its block fresh from the environment.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Cached root settings.

    get_settings.cache_clear() forces a reload.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Try to load every settings block.

    Returns {block_name: loaded_ok}, plus a "<block>_error" message
    for each block that failed. Meant for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.database
        results["database"] = True
    except Exception as e:
        results["database"] = False
        results["database_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
