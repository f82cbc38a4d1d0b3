"""Tests for environment driven settings."""

import os
from pathlib import Path

import pytest

from vitals_ingest.config import Settings

ENV_VARS = (
    "VITALS_DATA_DIR",
    "VITALS_LOCAL_MODE",
    "VITALS_PROGRESS_EVERY",
    "VITALS_MAX_SKIP_REASONS",
    "VITALS_WORKER_POLL_INTERVAL",
    "VITALS_WORKER_START_METHOD",
    "VITALS_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(tmp_path):
    """Test defaults when nothing is configured."""
    settings = Settings.from_env(env_file=tmp_path / "missing.env")

    assert settings.data_dir == Path.home() / ".vitals"
    assert settings.local_mode is False
    assert settings.progress_every == 1000
    assert settings.max_skip_reasons == 50
    assert settings.worker_poll_interval == 0.1
    assert settings.worker_start_method is None
    assert settings.log_level == "WARNING"


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("VITALS_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("VITALS_LOCAL_MODE", "true")
    monkeypatch.setenv("VITALS_PROGRESS_EVERY", "250")
    monkeypatch.setenv("VITALS_WORKER_START_METHOD", "spawn")
    monkeypatch.setenv("VITALS_LOG_LEVEL", "debug")

    settings = Settings.from_env(env_file=tmp_path / "missing.env")

    assert settings.data_dir == tmp_path / "data"
    assert settings.local_mode is True
    assert settings.progress_every == 250
    assert settings.worker_start_method == "spawn"
    assert settings.log_level == "DEBUG"


def test_env_file_is_loaded(tmp_path):
    """Test values from a dotenv file."""
    env_file = tmp_path / ".env"
    env_file.write_text("VITALS_MAX_SKIP_REASONS=5\nVITALS_WORKER_POLL_INTERVAL=0.5\n")

    try:
        settings = Settings.from_env(env_file=env_file)
    finally:
        # load_dotenv writes straight to os.environ
        os.environ.pop("VITALS_MAX_SKIP_REASONS", None)
        os.environ.pop("VITALS_WORKER_POLL_INTERVAL", None)

    assert settings.max_skip_reasons == 5
    assert settings.worker_poll_interval == 0.5


def test_invalid_values_are_rejected(monkeypatch, tmp_path):
    monkeypatch.setenv("VITALS_PROGRESS_EVERY", "0")

    with pytest.raises(ValueError):
        Settings.from_env(env_file=tmp_path / "missing.env")
