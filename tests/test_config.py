"""Tests for environment-driven settings."""

import pytest

from subtracker.config import (
    AppSettings,
    NotificationDefaults,
    get_settings,
    validate_all_settings,
)


class TestSettings:
    """Tests for pydantic-settings configuration."""

    def test_app_defaults(self):
        """Test defaults without any environment."""
        settings = AppSettings()
        assert settings.budget_near_limit_percent == 80.0
        assert settings.transitive_duplicates is False
        assert settings.stale_billing_date_days == 365

    def test_log_level_normalized(self, monkeypatch):
        """Test the log level is upper-cased."""
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert AppSettings().log_level == "DEBUG"

    def test_notification_defaults_from_env(self, monkeypatch):
        """Test prefixed notification settings."""
        monkeypatch.setenv("NOTIFICATIONS_DAYS_AHEAD", "7")
        monkeypatch.setenv("NOTIFICATIONS_SHOW_RENEWED", "false")

        prefs = NotificationDefaults().to_notification_settings()

        assert prefs.days_ahead == 7
        assert prefs.show_renewed is False
        assert prefs.show_price_changes is True

    def test_notification_window_bounds(self, monkeypatch):
        """Test an out-of-range window is rejected."""
        monkeypatch.setenv("NOTIFICATIONS_DAYS_AHEAD", "-1")
        with pytest.raises(ValueError):
            NotificationDefaults()

    def test_get_settings_is_cached(self):
        """Test the root settings object is reused."""
        assert get_settings() is get_settings()

    def test_validate_all_settings_reports_missing_sheets(self, monkeypatch):
        """Test missing Google Sheets settings are reported, not raised."""
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        results = validate_all_settings()

        assert results["google_sheets"] is False
        assert "google_sheets_error" in results
        assert results["notifications"] is True
        assert results["app"] is True
