"""
Configuration Management for SubTracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here, and the analysis
passes never read it directly. The orchestrator turns settings into plain
arguments (NotificationSettings, window sizes, thresholds) so the pure
functions stay deterministic and testable.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from subtracker.models.subscription import NotificationSettings


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    subscriptions_sheet_name: str = Field(
        default="Subscriptions",
        description="Name of the sheet for subscriptions"
    )
    budgets_sheet_name: str = Field(
        default="Budgets",
        description="Name of the sheet for budgets"
    )
    dismissals_sheet_name: str = Field(
        default="Dismissals",
        description="Name of the sheet for dismissed duplicate keys and notification ids"
    )
    price_history_sheet_name: str = Field(
        default="PriceHistory",
        description="Name of the sheet for recorded price changes"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class NotificationDefaults(BaseSettings):
    """Default notification preferences, used when a user has none stored."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATIONS_",
        extra="ignore"
    )

    days_ahead: int = Field(
        default=3,
        ge=0,
        le=60,
        description="Upcoming-charge window in days"
    )
    show_renewed: bool = Field(
        default=True,
        description="Include renewal confirmations"
    )
    show_price_changes: bool = Field(
        default=True,
        description="Include price-change alerts"
    )
    upcoming_window_days: int = Field(
        default=7,
        ge=0,
        description="Window for the dashboard 'upcoming charges' list"
    )

    def to_notification_settings(self) -> NotificationSettings:
        return NotificationSettings(
            days_ahead=self.days_ahead,
            show_renewed=self.show_renewed,
            show_price_changes=self.show_price_changes,
        )


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
    log_level: str = Field(
        default="INFO",
        description="Root log level for structured logging"
    )

    # Thresholds
    budget_near_limit_percent: float = Field(
        default=80.0,
        ge=0.0,
        le=100.0,
        description="Budget percentage above which a budget is 'near limit'"
    )
    transitive_duplicates: bool = Field(
        default=False,
        description="Group duplicates by connected components instead of the anchor scan"
    )

    # Input sanity checks
    max_subscription_amount: float = Field(
        default=10000.0,
        description="Amount above which a subscription is flagged as suspicious"
    )
    stale_billing_date_days: int = Field(
        default=365,
        description="How far in the past a next billing date can be before it is flagged"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()


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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def notifications(self) -> NotificationDefaults:
        return NotificationDefaults()

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

    for name in ("google_sheets", "notifications", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
