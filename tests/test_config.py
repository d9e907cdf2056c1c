"""Tests for loading configuration from the environment."""

import pytest

from gatekeeper import config as config_module
from gatekeeper.config import Config

ENV_VARS = [
    "DATABASE_BACKEND",
    "DATABASE_HOST",
    "DATABASE_PORT",
    "DATABASE_NAME",
    "DATABASE_USERNAME",
    "DATABASE_PASSWORD",
    "SQLITE_PATH",
    "APPLICATION_NAME",
    "TOKEN_SIZE",
    "MASTER_ID",
    "LOG_LEVEL",
    "LOG_FORMAT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start each test from an environment without any gatekeeper variables."""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(config_module, "_config", None)


@pytest.fixture
def postgres_env(monkeypatch):
    monkeypatch.setenv("DATABASE_NAME", "gatekeeper")
    monkeypatch.setenv("DATABASE_USERNAME", "gk")
    monkeypatch.setenv("DATABASE_PASSWORD", "secret")
    monkeypatch.setenv("MASTER_ID", "1234")


class TestFromEnv:
    def test_postgres_defaults(self, postgres_env):
        config = Config.from_env()

        assert config.backend == "postgres"
        assert config.master_id == 1234
        assert config.database.name == "gatekeeper"
        assert config.database.username == "gk"
        assert config.database.password == "secret"
        assert config.database.host == "localhost"
        assert config.database.port == 5432
        assert config.application_name == "gatekeeper"
        assert config.token_size == 32
        assert config.log_level == "INFO"

    def test_overrides(self, postgres_env, monkeypatch):
        monkeypatch.setenv("DATABASE_HOST", "db.internal")
        monkeypatch.setenv("DATABASE_PORT", "6543")
        monkeypatch.setenv("APPLICATION_NAME", "bot")
        monkeypatch.setenv("TOKEN_SIZE", "48")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        config = Config.from_env()

        assert config.database.host == "db.internal"
        assert config.database.port == 6543
        assert config.application_name == "bot"
        assert config.token_size == 48
        assert config.log_level == "DEBUG"

    def test_missing_variables_are_all_reported(self, monkeypatch):
        monkeypatch.setenv("DATABASE_NAME", "gatekeeper")

        with pytest.raises(ValueError) as exc_info:
            Config.from_env()

        message = str(exc_info.value)
        for var in ("DATABASE_USERNAME", "DATABASE_PASSWORD", "MASTER_ID"):
            assert var in message
        assert "DATABASE_NAME" not in message

    def test_sqlite_backend_needs_no_credentials(self, monkeypatch):
        monkeypatch.setenv("DATABASE_BACKEND", "sqlite")
        monkeypatch.setenv("SQLITE_PATH", "/tmp/gk.db")
        monkeypatch.setenv("MASTER_ID", "1")

        config = Config.from_env()

        assert config.backend == "sqlite"
        assert config.database.sqlite_path == "/tmp/gk.db"

    def test_missing_and_invalid_are_reported_together(self, monkeypatch):
        monkeypatch.setenv("DATABASE_BACKEND", "mysql")
        monkeypatch.setenv("TOKEN_SIZE", "0")

        with pytest.raises(ValueError) as exc_info:
            Config.from_env()

        message = str(exc_info.value)
        assert "MASTER_ID" in message
        assert "DATABASE_BACKEND" in message
        assert "TOKEN_SIZE must be positive" in message

    def test_unknown_backend(self, monkeypatch):
        monkeypatch.setenv("DATABASE_BACKEND", "mysql")
        monkeypatch.setenv("MASTER_ID", "1")

        with pytest.raises(ValueError, match="DATABASE_BACKEND"):
            Config.from_env()

    @pytest.mark.parametrize(
        "var, value",
        [("MASTER_ID", "root"), ("DATABASE_PORT", "abc"), ("TOKEN_SIZE", "1.5")],
    )
    def test_non_integer_values(self, postgres_env, monkeypatch, var, value):
        monkeypatch.setenv(var, value)

        with pytest.raises(ValueError, match=var):
            Config.from_env()

    @pytest.mark.parametrize("size", ["0", "-4"])
    def test_token_size_must_be_positive(self, postgres_env, monkeypatch, size):
        monkeypatch.setenv("TOKEN_SIZE", size)

        with pytest.raises(ValueError, match="TOKEN_SIZE must be positive"):
            Config.from_env()


class TestGetConfig:
    def test_is_cached(self, postgres_env):
        assert config_module.get_config() is config_module.get_config()
