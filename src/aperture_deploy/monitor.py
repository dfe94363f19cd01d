"""Fixed-interval polling of a workflow until it completes or fails."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import requests

from aperture_deploy.aperture.client import WorkflowStatus
from aperture_deploy.aperture.errors import ApertureError

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 5.0


class MonitorState(str, Enum):
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not MonitorState.POLLING


class StatusSource(Protocol):
    def status(self) -> WorkflowStatus: ...


def classify_status(status: WorkflowStatus) -> MonitorState:
    """Map a status snapshot to the next monitor state.

    An errored workflow is FAILED even if the server also flags it completed.
    """

    if status.workflow_error:
        return MonitorState.FAILED
    if status.workflow_completed:
        return MonitorState.SUCCEEDED
    return MonitorState.POLLING


@dataclass(frozen=True, slots=True)
class MonitorOutcome:
    """Terminal result of :meth:`WorkflowMonitor.run`."""

    state: MonitorState
    polls: int
    status: WorkflowStatus | None = None
    error: Exception | None = None

    @property
    def exit_code(self) -> int:
        return 0 if self.state is MonitorState.SUCCEEDED else 1


class WorkflowMonitor:
    """Query workflow status every `interval_seconds` until a terminal state.

    There is no iteration cap or overall timeout; the loop ends only on
    SUCCEEDED or FAILED (or when the process is interrupted). Each tick waits
    first, then issues exactly one status query.
    """

    def __init__(
        self,
        *,
        client: StatusSource,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        report: Callable[[str], None] = print,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._client = client
        self._interval = interval_seconds
        self._sleep = sleep
        self._report = report

    def run(self) -> MonitorOutcome:
        polls = 0
        last_step: str | None = None

        while True:
            self._sleep(self._interval)
            polls += 1

            try:
                status = self._client.status()
            except (ApertureError, requests.RequestException) as e:
                logger.warning("Workflow status query failed", extra={"polls": polls})
                self._report(str(e))
                return MonitorOutcome(state=MonitorState.FAILED, polls=polls, error=e)

            state = classify_status(status)

            if state is MonitorState.FAILED:
                logger.info(
                    "Workflow failed",
                    extra={"workflow_id": status.id, "current_step": status.current_step},
                )
                self._report("Workflow failed")
                self._report("\n".join(status.event_log))
                return MonitorOutcome(state=state, polls=polls, status=status)

            if state is MonitorState.SUCCEEDED:
                elapsed = status.elapsed_workflow_time or "unknown time"
                logger.info(
                    "Workflow completed",
                    extra={
                        "workflow_id": status.id,
                        "elapsed": status.elapsed_workflow_time,
                        "polls": polls,
                    },
                )
                self._report(f"Workflow completed in {elapsed}")
                return MonitorOutcome(state=state, polls=polls, status=status)

            if status.current_step != last_step:
                logger.info(
                    "Workflow milestone changed",
                    extra={"workflow_id": status.id, "current_step": status.current_step},
                )
                last_step = status.current_step
            self._report(f"Milestone: {status.current_step or 'unknown'} in progress")
