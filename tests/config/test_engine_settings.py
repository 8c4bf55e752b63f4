from pathlib import Path

import pytest
from psycopg.conninfo import make_conninfo
from pydantic import ValidationError

from programme_engine.config import config as config_module
from programme_engine.config.config import Settings


@pytest.fixture()
def base_settings_data() -> dict:
    return {
        "POSTGRES_USER": "postgres-user",
        "POSTGRES_PASSWORD": "postgres-password",
        "POSTGRES_HOST": "postgres-host",
        "POSTGRES_PORT": 5432,
        "POSTGRES_DB": "postgres-db",
    }


def test_database_url_uses_postgres_host(monkeypatch: pytest.MonkeyPatch, base_settings_data: dict) -> None:
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("DB_HOST_OVERRIDE", raising=False)
    settings = Settings(**base_settings_data)

    expected = make_conninfo(
        user="postgres-user",
        password="postgres-password",
        host="postgres-host",
        port=5432,
        dbname="postgres-db",
    )

    assert settings.DATABASE_URL == expected


def test_database_url_uses_override(monkeypatch: pytest.MonkeyPatch, base_settings_data: dict) -> None:
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("DB_HOST_OVERRIDE", "override-host")
    settings = Settings(**base_settings_data)

    assert "host=override-host" in settings.DATABASE_URL


def test_explicit_database_url_wins(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql://example/db")
    assert Settings().DATABASE_URL == "postgresql://example/db"


def test_defaults_allow_import_without_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DATABASE_URL", raising=False)
    settings = Settings()
    assert settings.PROGRAMME_TIMEZONE == "UTC"
    assert settings.COMPLETION_CONFLICT_RETRIES == 3
    assert settings.DEFAULT_FASTING_WINDOW == "12:00-20:00"
    assert settings.DATABASE_URL


def test_retry_counts_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Settings(STORE_MAX_RETRIES=0)


def test_log_path_prefers_configured_directory(tmp_path: Path) -> None:
    settings = Settings(ENGINE_LOG_DIR=tmp_path)
    assert settings.log_path == tmp_path / "programme_engine.log"


def test_get_env_prefers_environment_and_coerces(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STORE_MAX_RETRIES", "7")
    assert config_module.get_env("STORE_MAX_RETRIES") == 7

    monkeypatch.delenv("EVENT_WEBHOOK_URL", raising=False)
    assert config_module.get_env("EVENT_WEBHOOK_URL", default="fallback") == "fallback"
    assert config_module.get_env("NOT_A_SETTING", default=3) == 3
