from pathlib import Path

import pytest
from pydantic import ValidationError

from utils.config import Settings

REQUIRED = ("TOKEN", "OUTPUT_FOLDER", "LOG_FOLDER")


@pytest.fixture
def clean_env(monkeypatch):
    for name in REQUIRED:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.mark.parametrize("missing", REQUIRED)
def test_required_settings(clean_env, tmp_path, missing):
    values = {"TOKEN": "user:abc", "OUTPUT_FOLDER": str(tmp_path / "out"), "LOG_FOLDER": str(tmp_path / "log")}
    del values[missing]
    for name, value in values.items():
        clean_env.setenv(name, value)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_loads_from_environment(clean_env, tmp_path):
    clean_env.setenv("TOKEN", "user:abc")
    clean_env.setenv("OUTPUT_FOLDER", str(tmp_path / "out"))
    clean_env.setenv("LOG_FOLDER", str(tmp_path / "log"))
    clean_env.setenv("RENDER_TIMEOUT", "60")

    settings = Settings(_env_file=None)

    assert settings.TOKEN == "user:abc"
    assert settings.OUTPUT_FOLDER == tmp_path / "out"
    assert settings.RENDER_TIMEOUT == 60
    assert settings.RETRY_CEILING == 3
    assert settings.retry_store_path == tmp_path / "log" / "retries.db"
    assert settings.cursor_path == tmp_path / "log" / "cursor.txt"


def test_loads_from_env_file(clean_env, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("TOKEN=user:file\nOUTPUT_FOLDER=/srv/archive\nLOG_FOLDER=/var/log/archiver\n")

    settings = Settings(_env_file=env_file)

    assert settings.TOKEN == "user:file"
    assert settings.LOG_FOLDER == Path("/var/log/archiver")


def test_archive_format_dot_is_stripped():
    assert Settings(_env_file=None, TOKEN="t", OUTPUT_FOLDER="o", LOG_FOLDER="l", ARCHIVE_FORMAT=".html").ARCHIVE_FORMAT == "html"


def test_invalid_log_format_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, TOKEN="t", OUTPUT_FOLDER="o", LOG_FOLDER="l", LOG_FORMAT="xml")


def test_log_format_defaults_to_json(clean_env):
    clean_env.delenv("LOG_FORMAT", raising=False)
    assert Settings(_env_file=None, TOKEN="t", OUTPUT_FOLDER="o", LOG_FOLDER="l").LOG_FORMAT == "json"
