"""
Tests for environment configuration.
"""

import pytest

from config import Settings
from errors import ConfigurationError
from main import create_app

ENV = {
    "DATABASE_URL": "mongodb://localhost:27017/devevent",
    "CLOUDINARY_CLOUD_NAME": "demo",
    "CLOUDINARY_API_KEY": "key",
    "CLOUDINARY_API_SECRET": "secret",
}


def test_settings_from_env():
    settings = Settings.from_env({**ENV, "CORS_ORIGINS": "http://localhost:3000, https://devevent.app"})

    assert settings.database_url == ENV["DATABASE_URL"]
    assert settings.database_name is None
    assert settings.cloudinary_folder == "DevEvent"
    assert settings.cors_origins == ["http://localhost:3000", "https://devevent.app"]
    assert settings.log_level == "INFO"


def test_optional_values():
    settings = Settings.from_env({**ENV, "DATABASE_NAME": "events", "CLOUDINARY_FOLDER": "Events", "LOG_LEVEL": "debug"})

    assert settings.database_name == "events"
    assert settings.cloudinary_folder == "Events"
    assert settings.log_level == "DEBUG"


def test_missing_values_are_all_reported():
    env = dict(ENV, CLOUDINARY_API_SECRET="  ")
    del env["DATABASE_URL"]

    with pytest.raises(ConfigurationError) as exc_info:
        Settings.from_env(env)

    assert "DATABASE_URL" in exc_info.value.message
    assert "CLOUDINARY_API_SECRET" in exc_info.value.message
    assert "CLOUDINARY_API_KEY" not in exc_info.value.message


def test_app_refuses_to_start_without_configuration(monkeypatch):
    for name in ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("config.load_dotenv", lambda: False)

    with pytest.raises(ConfigurationError):
        create_app()


def test_module_app_is_built_once_on_first_access(monkeypatch):
    import main

    built = []

    def fake_create_app():
        built.append(object())
        return built[-1]

    monkeypatch.setattr(main, "_app", None)
    monkeypatch.setattr(main, "create_app", fake_create_app)

    assert main.app is built[0]
    assert main.app is built[0]
    assert len(built) == 1


def test_unknown_module_attribute():
    import main

    with pytest.raises(AttributeError):
        main.not_an_attribute
