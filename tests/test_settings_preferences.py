"""Tests for environment settings, local preferences and the component factory."""

import pytest
from pydantic import ValidationError

from gastos_pareja.config import (
    AppSettings,
    LedgerSettings,
    get_settings,
    validate_all_settings,
)
from gastos_pareja.models import (
    Configuration,
    UserPreferences,
    load_preferences,
    resolve_active_profile,
    save_preferences,
)
from gastos_pareja.orchestrator import LedgerSession, create_app_components
from gastos_pareja.services.storage import InMemoryLedgerStorage


class TestLedgerSettings:
    """Tests for LEDGER_* environment settings."""

    def test_defaults(self, monkeypatch):
        """Test defaults when nothing is set."""
        for name in ("LEDGER_TIMEZONE", "LEDGER_MAX_ENTRY_AMOUNT", "LEDGER_MAX_IMPORT_SIZE_MB"):
            monkeypatch.delenv(name, raising=False)
        settings = LedgerSettings()

        assert settings.timezone is None
        assert settings.max_entry_amount == 50_000_000
        assert settings.max_import_size_bytes == 5 * 1024 * 1024

    def test_env_prefix(self, monkeypatch):
        """Test values are read from prefixed environment variables."""
        monkeypatch.setenv("LEDGER_TIMEZONE", "America/Santiago")
        monkeypatch.setenv("LEDGER_FUTURE_DATE_TOLERANCE_DAYS", "7")

        settings = LedgerSettings()

        assert settings.timezone == "America/Santiago"
        assert settings.future_date_tolerance_days == 7

    def test_unknown_timezone_is_rejected(self):
        """Test bad IANA names fail at load time."""
        with pytest.raises(ValidationError):
            LedgerSettings(timezone="Mars/Olympus")

    def test_empty_timezone_means_local(self):
        """Test an empty value falls back to system local time."""
        assert LedgerSettings(timezone="").timezone is None

    def test_import_size_limits(self):
        """Test the import size bounds."""
        with pytest.raises(ValidationError):
            LedgerSettings(max_import_size_mb=0)
        with pytest.raises(ValidationError):
            LedgerSettings(max_import_size_mb=51)

    def test_get_settings_is_cached(self):
        """Test the root settings object is built once."""
        get_settings.cache_clear()
        assert get_settings() is get_settings()

    def test_validate_all_settings_reports_missing_groups(self, monkeypatch, tmp_path):
        """Test startup checks flag an unconfigured Sheets group."""
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        monkeypatch.delenv("LEDGER_TIMEZONE", raising=False)
        monkeypatch.chdir(tmp_path)

        results = validate_all_settings()

        assert results["google_sheets"] is False
        assert "google_sheets_error" in results
        assert results["ledger"] is True
        assert results["app"] is True


class TestAppSettings:
    """Tests for application-wide settings."""

    def test_log_level_from_env(self, monkeypatch):
        """Test the only app setting is the log level."""
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        settings = AppSettings()

        assert settings.log_level == "DEBUG"
        assert set(AppSettings.model_fields) == {"log_level"}

    def test_unknown_log_level_is_rejected(self):
        """Test level names are checked at load time."""
        with pytest.raises(ValidationError):
            AppSettings(log_level="VERBOSE")


class TestPreferences:
    """Tests for the local preferences file."""

    def test_missing_file_gives_defaults(self, tmp_path):
        """Test a first run without a preferences file."""
        prefs = load_preferences(tmp_path / "prefs.json")

        assert prefs.theme == "light"
        assert prefs.active_profile is None

    def test_save_and_load(self, tmp_path):
        """Test preferences survive a restart."""
        path = tmp_path / "prefs.json"
        save_preferences(
            UserPreferences(theme="dark", active_profile="B", device_id="phone-1"), path
        )

        prefs = load_preferences(path)

        assert prefs.theme == "dark"
        assert prefs.active_profile == "B"
        assert prefs.device_id == "phone-1"
        assert '"activeProfile"' in path.read_text(encoding="utf-8")

    @pytest.mark.parametrize("content", ["{broken", '{"theme": "neon"}', "[]"])
    def test_corrupt_file_gives_defaults(self, tmp_path, content):
        """Test unreadable preferences never block startup."""
        path = tmp_path / "prefs.json"
        path.write_text(content, encoding="utf-8")

        assert load_preferences(path) == UserPreferences()


class TestResolveActiveProfile:
    """Tests for picking the profile a device starts on."""

    def test_device_assignment_wins(self, config):
        """Test the stored device mapping beats the local choice."""
        config = config.model_copy(update={"device_profiles": {"phone-1": "B"}})
        prefs = UserPreferences(active_profile="A", device_id="phone-1")

        assert resolve_active_profile(prefs, config) == "B"

    def test_stored_choice(self, config):
        """Test the locally remembered profile."""
        assert resolve_active_profile(UserPreferences(active_profile="B"), config) == "B"

    def test_unknown_values_fall_back_to_default(self, config):
        """Test stale preferences resolve to the first profile."""
        config = config.model_copy(update={"device_profiles": {"phone-1": "Z"}})
        prefs = UserPreferences(active_profile="Z", device_id="phone-1")

        assert resolve_active_profile(prefs, config) == "A"


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_offline_components(self, monkeypatch, tmp_path):
        """Test an in-memory session with preferences from the configured path."""
        path = tmp_path / "prefs.json"
        save_preferences(UserPreferences(active_profile="pablo"), path)
        monkeypatch.setenv("LEDGER_PREFERENCES_PATH", str(path))
        monkeypatch.delenv("LEDGER_TIMEZONE", raising=False)

        session, prefs, sheets_client = create_app_components(use_storage=False)

        assert isinstance(session, LedgerSession)
        assert sheets_client is None
        assert prefs.active_profile == "pablo"
        assert session.config == Configuration.default()

    def test_missing_sheets_settings_fall_back_to_memory(self, monkeypatch, tmp_path):
        """Test a session still starts without Google Sheets configuration."""
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)
        monkeypatch.setenv("LEDGER_PREFERENCES_PATH", str(tmp_path / "prefs.json"))
        monkeypatch.chdir(tmp_path)

        session, prefs, sheets_client = create_app_components(use_storage=True)

        assert sheets_client is None
        assert isinstance(session._storage, InMemoryLedgerStorage)
        assert prefs == UserPreferences()
