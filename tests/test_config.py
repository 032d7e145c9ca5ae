"""Settings read from the environment."""

from integration_hub.config import DevelopmentConfig, ProductionConfig, Settings, TestingConfig, get_settings


def test_environment_overrides_defaults(monkeypatch):
    monkeypatch.setenv("WORKFLOW_STEP_TIMEOUT", "5")
    monkeypatch.setenv("database_url", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("ALLOWED_ORIGINS", '["https://hub.test"]')

    settings = Settings(_env_file=None)

    assert settings.workflow_step_timeout == 5.0
    assert settings.database_url == "sqlite+aiosqlite:///:memory:"
    assert settings.allowed_origins == ["https://hub.test"]


def test_get_settings_picks_environment(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    assert isinstance(get_settings(), ProductionConfig)

    monkeypatch.setenv("ENVIRONMENT", "testing")
    assert isinstance(get_settings(), TestingConfig)

    monkeypatch.delenv("ENVIRONMENT")
    assert isinstance(get_settings(), DevelopmentConfig)
