"""Unit tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from aperture_deploy.config import DEFAULT_TOKEN_URL, DeploySettings


def test_settings_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    settings = DeploySettings()

    assert settings.server_url == ""
    assert settings.token_url == DEFAULT_TOKEN_URL
    assert settings.credentials_path == Path.home() / ".aperturecfg"
    assert settings.poll_interval_seconds == 5.0
    assert settings.request_timeout_seconds is None
    assert settings.log_level == "WARNING"


def test_settings_loads_from_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text(
        "\n".join(
            [
                "APERTURE_SERVER_URL=https://aperture.example.com/",
                "APERTURE_POLL_SECONDS=2.5",
                "LOG_LEVEL=DEBUG",
                "",
            ]
        ),
        encoding="utf-8",
    )

    settings = DeploySettings()

    assert settings.server_url == "https://aperture.example.com"
    assert settings.poll_interval_seconds == 2.5
    assert settings.log_level == "DEBUG"


def test_environment_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("APERTURE_CREDENTIALS_FILE", str(tmp_path / "creds.json"))
    monkeypatch.setenv("APERTURE_REQUEST_TIMEOUT", "30")

    settings = DeploySettings()

    assert settings.credentials_path == tmp_path / "creds.json"
    assert settings.request_timeout_seconds == 30.0


def test_poll_interval_must_be_positive(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("APERTURE_POLL_SECONDS", "0")

    with pytest.raises(ValidationError):
        DeploySettings()


def test_log_level_is_normalized(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LOG_LEVEL", "info")

    assert DeploySettings().log_level == "INFO"


def test_unknown_log_level_is_rejected(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LOG_LEVEL", "verbose")

    with pytest.raises(ValidationError):
        DeploySettings()
