"""Configuration package."""

from expense_ledger.config.settings import (
    AMOUNT_SCALE,
    AppSettings,
    DatabaseSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AMOUNT_SCALE",
    "AppSettings",
    "DatabaseSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
