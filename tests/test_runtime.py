from __future__ import annotations

import pytest

from studydeck.app import AppSettings, ReviewRuntime, bootstrap
from studydeck.db import get_engine, get_session_factory, should_run_migrations
from studydeck.review import ReviewSession, SqlAlchemyCardStore


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "APP_NAME",
        "APP_ENV",
        "LOG_LEVEL",
        "REVIEW_COMMIT_TIMEOUT_SECONDS",
        "DATABASE_URL",
        "RUN_MIGRATIONS_ON_STARTUP",
    ):
        monkeypatch.delenv(name, raising=False)
    get_engine.cache_clear()
    get_session_factory.cache_clear()
    yield monkeypatch
    get_engine.cache_clear()
    get_session_factory.cache_clear()


def test_settings_defaults(clean_env) -> None:
    settings = AppSettings.from_env()

    assert settings.app_name == "Studydeck"
    assert settings.app_env == "development"
    assert settings.log_level == "INFO"
    assert settings.commit_timeout_seconds == 10.0


def test_settings_read_environment(clean_env) -> None:
    clean_env.setenv("APP_ENV", "production")
    clean_env.setenv("LOG_LEVEL", "debug")
    clean_env.setenv("REVIEW_COMMIT_TIMEOUT_SECONDS", "2.5")

    settings = AppSettings.from_env()

    assert settings.app_env == "production"
    assert settings.log_level == "DEBUG"
    assert settings.commit_timeout_seconds == 2.5


@pytest.mark.parametrize("value", ["soon", "0", "-3"])
def test_settings_reject_bad_timeout(clean_env, value: str) -> None:
    clean_env.setenv("REVIEW_COMMIT_TIMEOUT_SECONDS", value)

    with pytest.raises(RuntimeError, match="REVIEW_COMMIT_TIMEOUT_SECONDS"):
        AppSettings.from_env()


def test_migration_flag(clean_env) -> None:
    assert should_run_migrations() is True
    clean_env.setenv("RUN_MIGRATIONS_ON_STARTUP", "off")
    assert should_run_migrations() is False


def test_bootstrap_requires_database_url(clean_env) -> None:
    clean_env.setenv("RUN_MIGRATIONS_ON_STARTUP", "false")

    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        bootstrap(AppSettings.from_env())


def test_bootstrap_builds_sessions_with_configured_timeout(clean_env) -> None:
    clean_env.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    clean_env.setenv("RUN_MIGRATIONS_ON_STARTUP", "false")
    clean_env.setenv("REVIEW_COMMIT_TIMEOUT_SECONDS", "3")

    runtime = bootstrap(AppSettings.from_env())

    assert isinstance(runtime, ReviewRuntime)
    assert isinstance(runtime.store, SqlAlchemyCardStore)
    session = runtime.new_session("learner-1", deck_id="geography")
    assert isinstance(session, ReviewSession)
    assert session.owner_id == "learner-1"
    assert session.deck_id == "geography"
    assert session.commit_timeout == 3.0
