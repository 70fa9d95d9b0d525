"""Tests for environment-driven configuration."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from zyora.config import DEFAULT_API_BASE_URL, load_config

_ENV_VARS = [
    "ZYORA_API_BASE_URL",
    "ZYORA_API_TIMEOUT",
    "ZYORA_API_TOKEN",
    "ZYORA_HEALTH_POLL_ATTEMPTS",
    "ZYORA_HEALTH_POLL_INTERVAL",
    "ZYORA_MAX_SAVED_LOOKS",
    "ZYORA_MAX_FREE_QUOTA",
    "ZYORA_MAX_IMAGE_SIZE_MB",
    "GOOGLE_WEB_CLIENT_ID",
    "ENABLE_GOOGLE_AUTH",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    storage_path = tmp_path / "state" / "storage.json"
    monkeypatch.setenv("ZYORA_STORAGE_PATH", str(storage_path))
    return storage_path


def test_defaults(tmp_path: Path, clean_env: Path) -> None:
    config = load_config(tmp_path / "missing.env")

    assert config.api.base_url == DEFAULT_API_BASE_URL
    assert config.api.timeout_seconds == 120.0
    assert config.api.auth_token is None
    assert config.max_free_quota == 10
    assert config.storage.max_saved_looks == 50
    assert config.storage.path == clean_env
    assert clean_env.parent.is_dir()
    assert not config.enable_google_auth


def test_values_from_dotenv_file(tmp_path: Path) -> None:
    dotenv = tmp_path / "settings.env"
    dotenv.write_text(
        "ZYORA_API_BASE_URL=http://localhost:8080\n"
        "ZYORA_API_TOKEN=secret\n"
        "ZYORA_MAX_FREE_QUOTA=3\n"
        "ENABLE_GOOGLE_AUTH=yes\n"
        "GOOGLE_WEB_CLIENT_ID=web-client\n"
    )
    try:
        config = load_config(dotenv)
    finally:
        # load_dotenv writes straight into os.environ.
        for name in _ENV_VARS:
            os.environ.pop(name, None)

    assert config.api.base_url == "http://localhost:8080"
    assert config.api.auth_token == "secret"
    assert config.max_free_quota == 3
    assert config.enable_google_auth
    assert config.google.web_client_id == "web-client"


def test_invalid_number_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ZYORA_MAX_FREE_QUOTA", "ten")
    with pytest.raises(RuntimeError, match="Invalid integer value"):
        load_config(tmp_path / "missing.env")


def test_out_of_range_value_is_reported(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ZYORA_MAX_FREE_QUOTA", "0")
    with pytest.raises(RuntimeError, match="max_free_quota"):
        load_config(tmp_path / "missing.env")


def test_google_auth_requires_client_id(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENABLE_GOOGLE_AUTH", "true")
    with pytest.raises(RuntimeError, match="Google web client id"):
        load_config(tmp_path / "missing.env")
