"""Token acquisition for the OpenAperture API.

A username/password pair is taken from the first credential source that has
one (the local credential file, then the environment) and exchanged for a
bearer token with an OAuth password grant. Nothing is cached: every call to
:meth:`CredentialResolver.resolve` performs a fresh exchange.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from aperture_deploy.aperture.errors import AuthError

logger = logging.getLogger(__name__)

USERNAME_ENV_VAR = "APERTURE_USERNAME"
PASSWORD_ENV_VAR = "APERTURE_PASSWORD"


class Credential(BaseModel):
    """Bearer token returned by the token endpoint."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    access_token: str = Field(min_length=1)
    token_type: str = ""
    expires_in: str = ""
    scope: str = ""

    @field_validator("token_type", "expires_in", "scope", mode="before")
    @classmethod
    def _coerce_to_str(cls, value: object) -> object:
        # Identity providers disagree on whether expires_in is a number.
        if value is None:
            return ""
        if isinstance(value, int | float):
            return str(value)
        return value

    @property
    def authorization_header(self) -> str:
        return f"Bearer access_token={self.access_token}"


class StoredCredentials(BaseModel):
    """Content of the local credential file."""

    username: str
    password: str


@dataclass(frozen=True, slots=True)
class UserCredentials:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"UserCredentials(username={self.username!r}, password='***')"


class CredentialSource(Protocol):
    """A place a username/password pair may come from.

    Returns None when the source has nothing to offer so the next source is
    tried. Raises AuthError when the source exists but is unusable.
    """

    name: str

    def load(self) -> UserCredentials | None: ...


class CredentialsFileSource:
    """Credentials persisted by the `configure` command."""

    name = "credentials-file"

    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self) -> UserCredentials | None:
        if not self._path.exists():
            return None

        try:
            raw = self._path.read_bytes()
        except OSError as e:
            raise AuthError(f"Unable to read credential file {self._path}: {e}") from e

        try:
            stored = StoredCredentials.model_validate_json(raw)
        except (ValidationError, UnicodeDecodeError) as e:
            raise AuthError(
                f"Credential file {self._path} must contain a JSON object "
                "with 'username' and 'password'"
            ) from e

        logger.debug("Loaded credentials from file", extra={"path": str(self._path)})
        return UserCredentials(username=stored.username, password=stored.password)


class EnvironmentSource:
    """Credentials supplied through APERTURE_USERNAME / APERTURE_PASSWORD."""

    name = "environment"

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = os.environ if environ is None else environ

    def load(self) -> UserCredentials | None:
        username = self._environ.get(USERNAME_ENV_VAR, "")
        password = self._environ.get(PASSWORD_ENV_VAR, "")
        if not username or not password:
            return None
        logger.debug("Loaded credentials from environment")
        return UserCredentials(username=username, password=password)


class TokenClient:
    """Exchanges a username/password pair for a :class:`Credential`."""

    def __init__(
        self,
        *,
        token_url: str,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ) -> None:
        if not token_url:
            raise ValueError("token_url is required")
        self._token_url = token_url
        self._session = session or requests.Session()
        self._timeout = timeout

    def exchange(self, credentials: UserCredentials) -> Credential:
        """Perform the password grant.

        Transport failures propagate unchanged; anything the endpoint returns
        that is not a usable token is an AuthError. No retry.
        """

        payload = {
            "grant_type": "password",
            "username": credentials.username,
            "password": credentials.password,
        }
        resp = self._session.post(
            self._token_url,
            json=payload,
            headers={"Content-Type": "application/json"},
            timeout=self._timeout,
        )
        if not 200 <= resp.status_code < 300:
            raise AuthError(f"Token request failed: {resp.status_code} {resp.reason}")

        try:
            credential = Credential.model_validate_json(resp.content)
        except ValidationError as e:
            raise AuthError("Token endpoint returned an unusable response") from e

        logger.info(
            "Obtained access token",
            extra={"username": credentials.username, "token_type": credential.token_type},
        )
        return credential


class CredentialResolver:
    """Try each credential source in order; the first one with a pair wins."""

    def __init__(self, *, sources: Sequence[CredentialSource], token_client: TokenClient) -> None:
        self._sources = list(sources)
        self._token_client = token_client

    @classmethod
    def default(
        cls,
        *,
        credentials_path: Path,
        token_url: str,
        session: requests.Session | None = None,
        timeout: float | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> CredentialResolver:
        return cls(
            sources=[CredentialsFileSource(credentials_path), EnvironmentSource(environ)],
            token_client=TokenClient(token_url=token_url, session=session, timeout=timeout),
        )

    def resolve(self) -> Credential:
        for source in self._sources:
            credentials = source.load()
            if credentials is not None:
                logger.debug("Using credential source", extra={"source": source.name})
                return self._token_client.exchange(credentials)
        raise AuthError("missing credentials")


def write_credentials_file(path: Path, *, username: str, password: str) -> None:
    """Persist a username/password pair readable only by the current user."""

    path.parent.mkdir(parents=True, exist_ok=True)
    content = StoredCredentials(username=username, password=password).model_dump()
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(json.dumps(content))
    # O_CREAT only applies the mode to new files.
    os.chmod(path, 0o600)
    logger.info("Credentials written", extra={"path": str(path)})
