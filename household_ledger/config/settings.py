"""
Configuration Management for Household Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_BANK_WALLETS = (
    "Alpha Bank,Eurobank,Piraeus Bank,National Bank of Greece,"
    "Revolut Bank,N26 Bank,Binance,Nexo,Kucoin,ByBit,Kast"
)


class FirebaseSettings(BaseSettings):
    """Firebase (Firestore + Authentication) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FIREBASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to the service account credentials JSON"
    )
    project_id: Optional[str] = Field(
        default=None,
        description="Project ID (defaults to the one in the credentials)"
    )
    database: str = Field(
        default="(default)",
        description="Firestore database ID"
    )
    web_api_key: str = Field(
        ...,
        description="Web API key used for email/password authentication"
    )
    auth_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        le=120,
        description="Timeout for authentication REST calls"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Firebase credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
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

    # Invite links are built against this origin
    public_origin: str = Field(
        default="http://localhost:8501",
        description="Public origin of the app, used in invite links"
    )

    # Display
    currency_symbol: str = Field(
        default="€",
        max_length=3,
        description="Currency symbol shown next to amounts"
    )

    # Household defaults
    default_bank_wallets: str = Field(
        default=DEFAULT_BANK_WALLETS,
        description="Comma-separated bank/wallet labels seeded into new households"
    )
    invite_code_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="How many invite code candidates to try before accepting one"
    )

    # Validation thresholds
    max_transaction_amount: float = Field(
        default=1000000.0,
        gt=0,
        description="Amounts above this are flagged (warning only)"
    )

    @property
    def default_bank_wallets_list(self) -> list[str]:
        """Get default bank/wallet labels as a list."""
        labels = [w.strip() for w in self.default_bank_wallets.split(",")]
        return list(dict.fromkeys(w for w in labels if w))


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration
    # (tests and local demos run without Firebase credentials).

    @property
    def firebase(self) -> FirebaseSettings:
        return FirebaseSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.firebase
        results["firebase"] = True
    except Exception as e:
        results["firebase"] = False
        results["firebase_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
