"""Configuration for the deploy CLI.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Credentials are deliberately not part of these settings: they are resolved at
request time by :mod:`aperture_deploy.aperture.auth`, which reads the local
credential file first and falls back to `APERTURE_USERNAME` /
`APERTURE_PASSWORD`.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TOKEN_URL = "https://auth.psft.co/oauth/token"


def _default_credentials_path() -> Path:
    return Path.home() / ".aperturecfg"


class DeploySettings(BaseSettings):
    """Settings for the deploy CLI.

    Environment variables:
    - APERTURE_SERVER_URL        (required by `deploy`, `deploy-ecs` and `status`
                                  unless `--server` is given)
    - APERTURE_TOKEN_URL         (optional)
    - APERTURE_CREDENTIALS_FILE  (optional)
    - APERTURE_POLL_SECONDS      (optional)
    - APERTURE_REQUEST_TIMEOUT   (optional)
    - LOG_LEVEL                  (optional)

    Notes:
        Tests can point at a specific env file via
        `DeploySettings(_env_file=path_to_env)`.
    """

    server_url: str = Field(
        default="",
        validation_alias="APERTURE_SERVER_URL",
        description="Base URL of the OpenAperture manager API",
    )
    token_url: str = Field(
        default=DEFAULT_TOKEN_URL,
        validation_alias="APERTURE_TOKEN_URL",
        description="OAuth token endpoint used for the password grant",
    )
    credentials_path: Path = Field(
        default_factory=_default_credentials_path,
        validation_alias="APERTURE_CREDENTIALS_FILE",
        description="Local JSON file holding the username/password written by `configure`",
    )
    poll_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        validation_alias="APERTURE_POLL_SECONDS",
        description="Fixed interval between workflow status queries when following",
    )
    request_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        validation_alias="APERTURE_REQUEST_TIMEOUT",
        description="Per-request timeout; unset leaves it to the transport",
    )

    log_level: str = Field(
        default="WARNING",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("server_url", "token_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value!r}")
        return level
