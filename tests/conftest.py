"""Test configuration and fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import pytest
import requests

from aperture_deploy.aperture.auth import Credential
from aperture_deploy.aperture.client import Project

ResponseFactory = Callable[..., requests.Response]


def _make_response(
    status_code: int,
    *,
    reason: str = "",
    body: Any = None,
    headers: dict[str, str] | None = None,
) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status_code
    resp.reason = reason
    if body is None:
        resp._content = b""
    elif isinstance(body, bytes):
        resp._content = body
    else:
        resp._content = json.dumps(body).encode("utf-8")
    resp.headers.update(headers or {})
    return resp


@pytest.fixture
def make_response() -> ResponseFactory:
    """Build real `requests.Response` objects without touching the network."""
    return _make_response


@pytest.fixture
def credential() -> Credential:
    """Provide a test bearer token."""
    return Credential(access_token="test-token", token_type="bearer", expires_in="3600")


@pytest.fixture
def project() -> Project:
    """Provide a project ready for workflow creation."""
    return Project(
        name="my-service",
        environment="staging",
        commit="1a2b3c4",
        server_url="https://aperture.example.com",
    )


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "APERTURE_SERVER_URL",
        "APERTURE_USERNAME",
        "APERTURE_PASSWORD",
        "APERTURE_TOKEN_URL",
        "APERTURE_CREDENTIALS_FILE",
        "APERTURE_POLL_SECONDS",
        "APERTURE_REQUEST_TIMEOUT",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
