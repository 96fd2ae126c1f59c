import pytest
from pydantic import ValidationError

from dashboard_builder.config import DEFAULT_REPORTING_URL, Settings


@pytest.fixture
def clean_env(monkeypatch):
    for var in ("REPORTING_API_URL", "REPORTING_TIMEOUT", "REQUIRE_JOIN_PATH", "REFRESH_LATENCY", "NICEGUI_PORT"):
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = Settings.from_env(dotenv=False)
    assert settings.reporting_base_url == DEFAULT_REPORTING_URL
    assert settings.request_timeout is None
    assert settings.require_join_path is True
    assert not settings.reporting_configured


def test_values_from_environment(clean_env):
    clean_env.setenv("REPORTING_API_URL", "https://reports.example.com/api/reports/")
    clean_env.setenv("REPORTING_TIMEOUT", "12.5")
    clean_env.setenv("REQUIRE_JOIN_PATH", "false")
    clean_env.setenv("NICEGUI_PORT", "9000")
    settings = Settings.from_env(dotenv=False)
    assert settings.reporting_base_url == "https://reports.example.com/api/reports"
    assert settings.request_timeout == 12.5
    assert settings.require_join_path is False
    assert settings.port == 9000
    assert settings.reporting_configured


def test_empty_timeout_means_none(clean_env):
    clean_env.setenv("REPORTING_TIMEOUT", "")
    assert Settings.from_env(dotenv=False).request_timeout is None


def test_invalid_values_are_rejected():
    with pytest.raises(ValidationError):
        Settings(request_timeout=0)
    with pytest.raises(ValidationError):
        Settings(refresh_latency=-1)
