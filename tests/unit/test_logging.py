"""Unit tests for the JSON log formatter."""

from __future__ import annotations

import json
import logging

from aperture_deploy.logging import REDACTED, JsonFormatter, configure_logging, redact


def test_json_formatter_includes_extra_fields() -> None:
    record = logging.LogRecord(
        name="aperture_deploy.aperture.client",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Workflow created",
        args=(),
        exc_info=None,
    )
    record.workflow_id = "42"

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "aperture_deploy.aperture.client"
    assert payload["message"] == "Workflow created"
    assert payload["extra"] == {"workflow_id": "42"}


def test_configure_logging_replaces_handlers() -> None:
    root = logging.getLogger()
    original = list(root.handlers)
    try:
        configure_logging("debug")
        configure_logging("info")

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert root.level == logging.INFO
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
        for handler in original:
            root.addHandler(handler)


def test_json_formatter_masks_secret_extra_fields() -> None:
    record = logging.LogRecord(
        name="aperture_deploy.aperture.auth",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Obtained access token",
        args=(),
        exc_info=None,
    )
    record.username = "alice"
    record.password = "s3cret"
    record.headers = {"Authorization": "Bearer access_token=abc123", "Accept": "*/*"}
    record.grants = [{"access_token": "abc123", "scope": "public"}]

    output = JsonFormatter().format(record)
    payload = json.loads(output)

    assert "s3cret" not in output
    assert "abc123" not in output
    assert payload["extra"] == {
        "username": "alice",
        "password": REDACTED,
        "headers": {"Authorization": REDACTED, "Accept": "*/*"},
        "grants": [{"access_token": REDACTED, "scope": "public"}],
    }


def test_redact_leaves_plain_values_untouched() -> None:
    assert redact("password") == "password"
    assert redact({"workflow_id": "42", "token": "t"}) == {"workflow_id": "42", "token": REDACTED}
