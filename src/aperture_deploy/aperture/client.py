"""OpenAperture workflow client.

Workflows are created and executed in two separate calls: the server models
creation and triggering as distinct state transitions, so a created workflow
is not assumed to be running until `execute_workflow` succeeds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

import requests
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from aperture_deploy.aperture.auth import Credential
from aperture_deploy.aperture.errors import ProjectValidationError, WorkflowError

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_CREATED = 201
HTTP_ACCEPTED = 202
HTTP_NO_CONTENT = 204


@dataclass(slots=True)
class Project:
    """The deployment repository a single CLI invocation acts on.

    `workflow_id` stays None until `create_workflow` succeeds.
    """

    name: str
    environment: str
    commit: str
    server_url: str
    force_build: bool = False
    build_exchange_id: str = ""
    deploy_exchange_id: str = ""
    workflow_id: str | None = None

    def validate(self) -> None:
        missing = [
            label
            for label, value in (
                ("project name", self.name),
                ("environment", self.environment),
                ("commit", self.commit),
            )
            if not value or not value.strip()
        ]
        if missing:
            raise ProjectValidationError(f"Missing required project fields: {', '.join(missing)}")
        if not self.server_url.strip():
            raise ProjectValidationError("Server URL is not set")


class WorkflowRequest(BaseModel):
    """Body of `POST /workflows`."""

    deployment_repo: str
    deployment_repo_git_ref: str
    source_repo: str = ""
    source_repo_git_ref: str
    milestones: list[str]

    @classmethod
    def from_project(cls, project: Project, operations: list[str]) -> WorkflowRequest:
        return cls(
            deployment_repo=project.name,
            deployment_repo_git_ref=project.environment,
            source_repo_git_ref=project.commit,
            milestones=list(operations),
        )


class ExecuteRequest(BaseModel):
    """Body of `POST /workflows/<id>/execute`."""

    build_messaging_exchange_id: str = ""
    deploy_messaging_exchange_id: str = ""
    force_build: bool = False

    @classmethod
    def from_project(cls, project: Project) -> ExecuteRequest:
        return cls(
            build_messaging_exchange_id=project.build_exchange_id,
            deploy_messaging_exchange_id=project.deploy_exchange_id,
            force_build=project.force_build,
        )

    def to_payload(self) -> dict[str, Any]:
        # The server has always received deploy_messaging_exchange_id, even when
        # empty; only the build exchange id is dropped when unset.
        payload = self.model_dump()
        if not self.build_messaging_exchange_id:
            del payload["build_messaging_exchange_id"]
        return payload


class WorkflowStatus(BaseModel):
    """Snapshot returned by `GET /workflows/<id>`."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str | None = None
    current_step: str | None = None
    event_log: list[str] = Field(default_factory=list)
    workflow_completed: bool = False
    workflow_error: bool = False
    elapsed_workflow_time: str | None = None
    elapsed_step_time: str | None = None
    workflow_duration: str | None = None
    workflow_step_durations: dict[str, Any] = Field(default_factory=dict)
    milestones: list[str] = Field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None
    deployment_repo: str | None = None
    deployment_repo_git_ref: str | None = None
    source_repo: str | None = None
    source_repo_git_ref: str | None = None
    source_commit_hash: str | None = None

    @field_validator(
        "id", "elapsed_workflow_time", "elapsed_step_time", "workflow_duration", mode="before"
    )
    @classmethod
    def _numbers_as_str(cls, value: object) -> object:
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("event_log", "milestones", "workflow_step_durations", mode="before")
    @classmethod
    def _null_as_empty(cls, value: object, info: ValidationInfo) -> object:
        if value is None:
            return {} if info.field_name == "workflow_step_durations" else []
        return value


@dataclass(frozen=True, slots=True)
class ApertureResponse:
    """Uniform view of a server response."""

    status: str
    status_code: int
    body: bytes
    location: str = ""


def workflow_id_from_location(location: str) -> str:
    """Extract `<id>` from a Location header such as `/workflows/<id>/`."""

    segments = [s for s in urlparse(location).path.split("/") if s]
    if len(segments) < 2:
        raise WorkflowError(f"Unexpected workflow location: {location!r}")
    return segments[1]


class WorkflowClient:
    """Create, execute and inspect workflows for one :class:`Project`."""

    def __init__(
        self,
        *,
        project: Project,
        credential: Credential,
        session: requests.Session | None = None,
        timeout: float | None = None,
    ) -> None:
        self._project = project
        self._credential = credential
        self._session = session or requests.Session()
        self._timeout = timeout

    @property
    def project(self) -> Project:
        return self._project

    def _url(self, path: str) -> str:
        return f"{self._project.server_url.rstrip('/')}/{path.lstrip('/')}"

    def _request(
        self, method: str, url: str, *, payload: dict[str, Any] | None = None
    ) -> ApertureResponse:
        """Perform one authenticated JSON call.

        Transport errors (requests.RequestException) are not caught here.
        """

        headers = {
            "Authorization": self._credential.authorization_header,
            "Content-Type": "application/json",
        }
        resp = self._session.request(
            method,
            url,
            json=payload,
            headers=headers,
            timeout=self._timeout,
        )
        response = ApertureResponse(
            status=f"{resp.status_code} {resp.reason or ''}".strip(),
            status_code=resp.status_code,
            body=resp.content or b"",
            location=resp.headers.get("Location") or "",
        )
        logger.debug(
            "Aperture request complete",
            extra={"method": method, "url": url, "status_code": response.status_code},
        )
        return response

    def create_workflow(self, operations: list[str]) -> ApertureResponse:
        """Create a workflow running `operations` in order.

        On success the workflow id is stored on the project and the response
        (whose `location` feeds :meth:`execute_workflow`) is returned.
        """

        self._project.validate()
        request = WorkflowRequest.from_project(self._project, operations)
        resp = self._request("POST", self._url("workflows"), payload=request.model_dump())
        if resp.status_code != HTTP_CREATED:
            raise WorkflowError(
                f"Failed to create workflow: {resp.status}",
                status=resp.status,
                status_code=resp.status_code,
            )

        workflow_id = workflow_id_from_location(resp.location)
        self._project.workflow_id = workflow_id
        logger.info(
            "Workflow created",
            extra={
                "project": self._project.name,
                "workflow_id": workflow_id,
                "milestones": request.milestones,
            },
        )
        return resp

    def execute_workflow(self, location: str) -> None:
        self._project.validate()
        if not location:
            raise WorkflowError("Workflow location is required to execute a workflow")

        base = location.rstrip("/")
        url = f"{base}/execute" if urlparse(base).scheme else self._url(f"{base}/execute")
        request = ExecuteRequest.from_project(self._project)
        resp = self._request("POST", url, payload=request.to_payload())
        if resp.status_code not in (HTTP_NO_CONTENT, HTTP_ACCEPTED):
            raise WorkflowError(
                f"Failed to execute workflow: {resp.status}",
                status=resp.status,
                status_code=resp.status_code,
            )
        logger.info(
            "Workflow execution requested",
            extra={"workflow_id": self._project.workflow_id, "force_build": request.force_build},
        )

    def status(self) -> WorkflowStatus:
        workflow_id = self._project.workflow_id
        if not workflow_id:
            raise ProjectValidationError("Workflow id is not set; create a workflow first")

        resp = self._request("GET", self._url(f"workflows/{workflow_id}"))
        if resp.status_code != HTTP_OK:
            raise WorkflowError(
                f"Failed to retrieve status: {resp.status}",
                status=resp.status,
                status_code=resp.status_code,
            )

        try:
            return WorkflowStatus.model_validate_json(resp.body)
        except ValidationError as e:
            raise WorkflowError(
                f"Failed to decode status of workflow {workflow_id}",
                status=resp.status,
                status_code=resp.status_code,
            ) from e
