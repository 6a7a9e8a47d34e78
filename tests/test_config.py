"""Tests for the environment-backed config loader."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from config.loader import ConfigLoader


@pytest.fixture
def loader(tmp_path: Path) -> ConfigLoader:
    return ConfigLoader(env_path=str(tmp_path / "missing.env"))


def test_default_when_unset(loader: ConfigLoader, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CODEX_ACCOUNTS_CALLBACK_PORT", raising=False)
    assert loader.get("CALLBACK_PORT", 1455) == 1455


def test_type_coercion(loader: ConfigLoader, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CODEX_ACCOUNTS_CALLBACK_PORT", "1456")
    monkeypatch.setenv("CODEX_ACCOUNTS_EVICT_PORT_OWNER", "false")
    monkeypatch.setenv("CODEX_ACCOUNTS_REQUEST_TIMEOUT", "2.5")
    assert loader.get("CALLBACK_PORT", 1455) == 1456
    assert loader.get("EVICT_PORT_OWNER", True) is False
    assert loader.get("REQUEST_TIMEOUT", 30.0) == 2.5


def test_bad_number_falls_back(loader: ConfigLoader, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CODEX_ACCOUNTS_REFRESH_INTERVAL", "often")
    assert loader.get("REFRESH_INTERVAL", 1800) == 1800


def test_home_expansion(loader: ConfigLoader, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CODEX_ACCOUNTS_ACCOUNTS_FILE", "~/x/accounts.json")
    assert loader.get("ACCOUNTS_FILE", "default") == str(Path("~/x/accounts.json").expanduser())


def test_env_file_is_loaded(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CODEX_ACCOUNTS_LOG_LEVEL", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("CODEX_ACCOUNTS_LOG_LEVEL=debug\n")

    loader = ConfigLoader(env_path=str(env_file))
    try:
        assert loader.get("LOG_LEVEL", "info") == "debug"
    finally:
        os.environ.pop("CODEX_ACCOUNTS_LOG_LEVEL", None)


def test_unknown_boolean_falls_back(loader: ConfigLoader, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CODEX_ACCOUNTS_EVICT_PORT_OWNER", "maybe")
    assert loader.get("EVICT_PORT_OWNER", True) is True
    monkeypatch.setenv("CODEX_ACCOUNTS_EVICT_PORT_OWNER", "off")
    assert loader.get("EVICT_PORT_OWNER", True) is False


def test_env_file_location_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CODEX_ACCOUNTS_CALLBACK_HOST", raising=False)
    env_file = tmp_path / "codex.env"
    env_file.write_text("CODEX_ACCOUNTS_CALLBACK_HOST=::1\n")
    monkeypatch.setenv("CODEX_ACCOUNTS_ENV_FILE", str(env_file))

    loader = ConfigLoader()
    try:
        assert loader.env_file == env_file
        assert loader.get("CALLBACK_HOST", "127.0.0.1") == "::1"
    finally:
        os.environ.pop("CODEX_ACCOUNTS_CALLBACK_HOST", None)


def test_environment_wins_over_env_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("CODEX_ACCOUNTS_REFRESH_MARGIN=60\n")
    monkeypatch.setenv("CODEX_ACCOUNTS_REFRESH_MARGIN", "120")

    assert ConfigLoader(env_path=str(env_file)).get("REFRESH_MARGIN", 600) == 120
