"""
Tests for env.py - .env loading and settings.
"""

from pathlib import Path

import pytest

from jobremover.env import DEFAULT_ODBC_DRIVER, Settings, load_env

ENV_VARS = [
    "JOBREMOVER_ODBC_DRIVER",
    "JOBREMOVER_CONNECT_TIMEOUT",
    "JOBREMOVER_TRUST_SERVER_CERTIFICATE",
    "JOBREMOVER_SQL_USER",
    "JOBREMOVER_SQL_PASSWORD",
    "JOBREMOVER_LOG_LEVEL",
    "JOBREMOVER_LOG_DIR",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    def test_defaults(self):
        settings = Settings.from_env()

        assert settings.odbc_driver == DEFAULT_ODBC_DRIVER
        assert settings.connect_timeout == 15
        assert settings.trust_server_certificate is True
        assert settings.log_dir is None
        assert settings.default_credential() is None

    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("JOBREMOVER_ODBC_DRIVER", "ODBC Driver 17 for SQL Server")
        monkeypatch.setenv("JOBREMOVER_CONNECT_TIMEOUT", "30")
        monkeypatch.setenv("JOBREMOVER_TRUST_SERVER_CERTIFICATE", "no")
        monkeypatch.setenv("JOBREMOVER_LOG_DIR", str(tmp_path))

        settings = Settings.from_env()

        assert settings.odbc_driver == "ODBC Driver 17 for SQL Server"
        assert settings.connect_timeout == 30
        assert settings.trust_server_certificate is False
        assert settings.log_dir == tmp_path

    def test_credential_from_env(self, monkeypatch):
        monkeypatch.setenv("JOBREMOVER_SQL_USER", "sqladmin")
        monkeypatch.setenv("JOBREMOVER_SQL_PASSWORD", "pw")

        cred = Settings.from_env().default_credential()

        assert cred.username == "sqladmin"
        assert cred.password == "pw"
        assert "pw" not in repr(cred)

    def test_explicit_credential_values_win(self, monkeypatch):
        monkeypatch.setenv("JOBREMOVER_SQL_USER", "sqladmin")
        monkeypatch.setenv("JOBREMOVER_SQL_PASSWORD", "pw")
        settings = Settings.from_env()

        cred = settings.default_credential(username="deployer", password="other")
        assert (cred.username, cred.password) == ("deployer", "other")

        cred = settings.default_credential(password="")
        assert (cred.username, cred.password) == ("sqladmin", "")

    def test_explicit_user_without_env(self):
        cred = Settings.from_env().default_credential(username="deployer")
        assert cred.username == "deployer"
        assert cred.password == ""

    def test_bad_timeout(self, monkeypatch):
        monkeypatch.setenv("JOBREMOVER_CONNECT_TIMEOUT", "soon")
        with pytest.raises(ValueError, match="JOBREMOVER_CONNECT_TIMEOUT"):
            Settings.from_env()


class TestLoadEnv:
    def test_loads_dotenv_from_cwd(self, monkeypatch, tmp_path):
        (tmp_path / ".env").write_text("JOBREMOVER_SQL_USER=from_dotenv\n")
        monkeypatch.chdir(tmp_path)
        # Registers the variable with monkeypatch so the loaded value is undone.
        monkeypatch.setenv("JOBREMOVER_SQL_USER", "")
        monkeypatch.delenv("JOBREMOVER_SQL_USER")

        load_env()

        assert Settings.from_env().sql_user == "from_dotenv"

    def test_missing_dotenv_is_ignored(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        load_env()
        assert Settings.from_env().sql_user is None
