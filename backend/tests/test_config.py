"""
Tests for centralized configuration.
"""
import pytest
import os
from chartpilot.core.config import Settings, get_settings, reload_settings


@pytest.mark.unit
def test_settings_defaults():
    """Test that settings have sensible defaults."""
    settings = Settings()

    assert settings.max_file_size_mb == 10
    assert settings.max_files == 3
    assert settings.rate_limit_per_minute == 10
    assert settings.request_timeout_seconds == 300
    assert settings.log_level == "INFO"
    assert settings.ai_timeout_seconds == 20.0
    assert settings.preference_margin == 1.0
    assert (settings.few_rows_threshold, settings.many_rows_threshold) == (8, 15)


@pytest.mark.unit
def test_settings_from_env():
    """Test loading settings from environment variables."""
    original_max_file = os.environ.get("MAX_FILE_SIZE_MB")
    original_margin = os.environ.get("PREFERENCE_MARGIN")

    try:
        os.environ["MAX_FILE_SIZE_MB"] = "25"
        os.environ["PREFERENCE_MARGIN"] = "2.5"

        reload_settings()
        settings = get_settings()

        assert settings.max_file_size_mb == 25
        assert settings.preference_margin == 2.5
    finally:
        if original_max_file:
            os.environ["MAX_FILE_SIZE_MB"] = original_max_file
        else:
            os.environ.pop("MAX_FILE_SIZE_MB", None)

        if original_margin:
            os.environ["PREFERENCE_MARGIN"] = original_margin
        else:
            os.environ.pop("PREFERENCE_MARGIN", None)

        reload_settings()


@pytest.mark.unit
def test_ai_timeout_can_be_disabled(monkeypatch):
    monkeypatch.setenv("AI_TIMEOUT_SECONDS", "none")
    assert Settings.from_env().ai_timeout_seconds is None


@pytest.mark.unit
def test_settings_validation():
    """Test that settings validate input ranges."""
    with pytest.raises(ValueError):
        Settings(max_file_size_mb=0)  # Below minimum

    with pytest.raises(ValueError):
        Settings(max_file_size_mb=2000)  # Above maximum

    with pytest.raises(ValueError):
        Settings(log_level="INVALID")

    with pytest.raises(ValueError):
        Settings(supported_extensions="csv,xlsx")

    with pytest.raises(ValueError):
        Settings(few_rows_threshold=20, many_rows_threshold=15)


@pytest.mark.unit
def test_settings_properties():
    """Test computed properties."""
    settings = Settings(max_file_size_mb=5, supported_extensions=".CSV, .xlsx")

    assert settings.max_file_size_bytes == 5 * 1024 * 1024
    assert settings.supported_extensions_list == [".csv", ".xlsx"]
    assert isinstance(settings.allowed_origins_list, list)
    assert len(settings.allowed_origins_list) > 0
    assert Settings(log_level="debug").log_level == "DEBUG"


@pytest.mark.unit
def test_settings_singleton():
    """Test that get_settings returns singleton."""
    settings1 = get_settings()
    settings2 = get_settings()

    assert settings1 is settings2
