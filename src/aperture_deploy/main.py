"""CLI entrypoint for aperture-deploy.

Commands:
- deploy / deploy-ecs: create and execute a build+deploy workflow
- status: inspect (or follow) an existing workflow
- configure: store OpenAperture credentials locally
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys

import requests
from pydantic import ValidationError

from aperture_deploy import __version__
from aperture_deploy.aperture.auth import CredentialResolver, write_credentials_file
from aperture_deploy.aperture.client import Project, WorkflowClient
from aperture_deploy.aperture.errors import ApertureError, ProjectValidationError
from aperture_deploy.config import DeploySettings
from aperture_deploy.logging import configure_logging
from aperture_deploy.monitor import MonitorState, WorkflowMonitor, classify_status

logger = logging.getLogger(__name__)

DEPLOY_OPERATIONS: dict[str, list[str]] = {
    "deploy": ["build", "deploy"],
    "deploy-ecs": ["build", "deploy_ecs"],
}


def _add_deploy_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("project", nargs="?", default="", help="Project (deployment repo) name")
    parser.add_argument(
        "-e", "--environment", default="", help="Environment to build or deploy"
    )
    parser.add_argument(
        "-c", "--commit", default="", help="Commit hash or branch to build or deploy"
    )
    parser.add_argument("--build-exchange", default="", help="Set the build exchange id")
    parser.add_argument("--deploy-exchange", default="", help="Set the deploy exchange id")
    parser.add_argument("--force", action="store_true", help="Force a docker build")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aperture-deploy",
        description="Trigger and follow OpenAperture build/deploy workflows",
    )
    parser.add_argument("--version", action="version", version=f"aperture-deploy {__version__}")
    parser.add_argument(
        "-f",
        "--follow",
        action="store_true",
        help="Continually check the status of a build or deploy",
    )
    parser.add_argument(
        "-s",
        "--server",
        default=None,
        help="Build server URL (defaults to APERTURE_SERVER_URL)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    deploy = subparsers.add_parser("deploy", help="Build and deploy a docker repository")
    _add_deploy_arguments(deploy)
    deploy.set_defaults(operations=DEPLOY_OPERATIONS["deploy"])

    deploy_ecs = subparsers.add_parser(
        "deploy-ecs",
        aliases=["deploy_ecs"],
        help="Build and deploy a docker repository to ECS",
    )
    _add_deploy_arguments(deploy_ecs)
    deploy_ecs.set_defaults(operations=DEPLOY_OPERATIONS["deploy-ecs"])

    status = subparsers.add_parser("status", help="Show the status of an existing workflow")
    status.add_argument("workflow_id", help="Workflow identifier")

    subparsers.add_parser("configure", help="Store OpenAperture credentials locally")

    return parser


def _validate_deploy_args(args: argparse.Namespace) -> str | None:
    command = args.command
    if not args.environment:
        return f"Environment was not set.  Please specify an environment to {command}"
    if not args.commit:
        return (
            "Commit hash or branch was not set.  "
            f"Please specify a commit hash or branch to {command}"
        )
    if not args.project:
        return f"Project name was not set. Please specify a project to {command}"
    return None


def _resolver(settings: DeploySettings, session: requests.Session) -> CredentialResolver:
    return CredentialResolver.default(
        credentials_path=settings.credentials_path,
        token_url=settings.token_url,
        session=session,
        timeout=settings.request_timeout_seconds,
    )


def _follow(
    *,
    project: Project,
    settings: DeploySettings,
    session: requests.Session,
) -> int:
    # A fresh token for the polling phase; deploys can outlive the first one.
    client = WorkflowClient(
        project=project,
        credential=_resolver(settings, session).resolve(),
        session=session,
        timeout=settings.request_timeout_seconds,
    )
    monitor = WorkflowMonitor(client=client, interval_seconds=settings.poll_interval_seconds)
    outcome = monitor.run()
    return outcome.exit_code


def _run_deploy(
    args: argparse.Namespace, settings: DeploySettings, session: requests.Session
) -> int:
    message = _validate_deploy_args(args)
    if message is not None:
        print(message, file=sys.stderr)
        return 2

    server_url = (args.server or settings.server_url).rstrip("/")
    if not server_url:
        print(
            "Server URL was not set.  Use --server or set APERTURE_SERVER_URL",
            file=sys.stderr,
        )
        return 2

    print(
        f"Sending deploy request for:\n Project: {args.project}\n Environment: {args.environment}"
    )
    project = Project(
        name=args.project,
        environment=args.environment,
        commit=args.commit,
        server_url=server_url,
        force_build=args.force,
        build_exchange_id=args.build_exchange,
        deploy_exchange_id=args.deploy_exchange,
    )

    client = WorkflowClient(
        project=project,
        credential=_resolver(settings, session).resolve(),
        session=session,
        timeout=settings.request_timeout_seconds,
    )
    created = client.create_workflow(args.operations)
    print(f"Workflow created: {created.location}")
    client.execute_workflow(created.location)
    print("Successfully sent deploy request")

    if args.follow:
        return _follow(project=project, settings=settings, session=session)
    return 0


def _run_status(
    args: argparse.Namespace, settings: DeploySettings, session: requests.Session
) -> int:
    server_url = (args.server or settings.server_url).rstrip("/")
    if not server_url:
        print(
            "Server URL was not set.  Use --server or set APERTURE_SERVER_URL",
            file=sys.stderr,
        )
        return 2

    project = Project(
        name="",
        environment="",
        commit="",
        server_url=server_url,
        workflow_id=args.workflow_id,
    )
    if args.follow:
        return _follow(project=project, settings=settings, session=session)

    client = WorkflowClient(
        project=project,
        credential=_resolver(settings, session).resolve(),
        session=session,
        timeout=settings.request_timeout_seconds,
    )
    status = client.status()
    state = classify_status(status)
    print(f"Workflow {args.workflow_id}: {state.value}")
    if state is MonitorState.FAILED:
        print("\n".join(status.event_log))
        return 1
    if state is MonitorState.SUCCEEDED:
        print(f"Completed in {status.elapsed_workflow_time}")
    else:
        print(f"Milestone: {status.current_step or 'unknown'} in progress")
    return 0


def _run_configure(settings: DeploySettings) -> int:
    username = input("Username: ").strip()
    password = getpass.getpass("Password: ")
    if not username or not password:
        print("Username and password are both required", file=sys.stderr)
        return 2

    write_credentials_file(settings.credentials_path, username=username, password=password)
    print(f"Credentials saved to {settings.credentials_path}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = DeploySettings()
    except ValidationError as e:
        # Logging isn't configured yet.
        print("Configuration error (check your environment or .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    session = requests.Session()
    try:
        if args.command == "configure":
            return _run_configure(settings)

        if args.command == "status":
            return _run_status(args, settings, session)

        if hasattr(args, "operations"):
            return _run_deploy(args, settings, session)

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except ProjectValidationError as e:
        print(str(e), file=sys.stderr)
        return 2

    except (ApertureError, requests.RequestException) as e:
        logger.warning("Command failed", extra={"error_type": type(e).__name__})
        print(str(e), file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130

    except Exception:
        logger.exception("Command failed")
        return 1

    finally:
        session.close()


if __name__ == "__main__":
    raise SystemExit(main())
