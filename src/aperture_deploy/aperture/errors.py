from __future__ import annotations


class ApertureError(Exception):
    """Base class for failures raised by the OpenAperture integration."""


class AuthError(ApertureError):
    """Credentials could not be resolved or exchanged for a token."""


class ProjectValidationError(ApertureError):
    """The project is missing fields required before talking to the server."""


class WorkflowError(ApertureError):
    """The server answered a workflow call with an unexpected status."""

    def __init__(self, message: str, *, status: str = "", status_code: int | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.status_code = status_code
