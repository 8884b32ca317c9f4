"""
envrefresh command line.

    envrefresh run Source=prod Destination=qa DryRun=false AutoApprove=true
    envrefresh restore Source=prod RestoreDateTime="2024-05-01 09:30:00" Timezone=Europe/Warsaw
    envrefresh steps --workflow refresh.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import uuid
from typing import Sequence

from envrefresh import __version__
from envrefresh.cli import ux
from envrefresh.cli.invocation import parse_invocation
from envrefresh.cli.output import render_json, render_text
from envrefresh.clients import PermissionClient
from envrefresh.config import Settings, get_settings
from envrefresh.core.errors import PrerequisiteError, main_with_error_handling
from envrefresh.logging import bind_context, configure_logging
from envrefresh.workflow import (
    Collaborators,
    ParameterDetector,
    ParameterInput,
    ParameterResolver,
    Sequencer,
    StepDefinition,
    StepRegistry,
    default_steps,
    load_workflow,
    register_default_handlers,
)

RESTORE_ONLY_STEPS = ("connect", "restore-point-in-time")


def azure_collaborators(settings: Settings) -> Collaborators:
    from envrefresh.azure import (
        AksEnvironmentControl,
        AzAccountSession,
        AzCli,
        AzDataCopier,
        AzResourceDirectory,
        AzSqlControlPlane,
    )

    az = AzCli(settings.az_path)
    directory = AzResourceDirectory(az)
    control_plane = AzSqlControlPlane(az, settings)
    permissions = None
    if settings.permission_function_url:
        permissions = PermissionClient(
            settings.permission_function_url,
            settings.permission_function_key,
            timeout=settings.http_timeout,
            max_retries=settings.http_max_retries,
        )
    return Collaborators(
        directory=directory,
        control_plane=control_plane,
        environment=AksEnvironmentControl(az, directory),
        data_copier=AzDataCopier(az, directory, control_plane, settings),
        account=AzAccountSession(az),
        permissions=permissions,
    )


def _select_steps(workflow: str | None, only: Sequence[str] | None) -> list[StepDefinition]:
    steps = load_workflow(workflow) if workflow else default_steps()
    if only:
        steps = [s for s in steps if s.id in only]
    return steps


def _confirm_live_run(explicit: ParameterInput) -> None:
    if explicit.dry_run is not False or explicit.auto_approve:
        return
    source = explicit.source or "<detected>"
    destination = explicit.destination or source
    if not ux.confirm(f"Run a LIVE refresh from {source} to {destination}? Databases will be modified."):
        raise PrerequisiteError("Live run was not confirmed", {"hint": "pass AutoApprove=true or DryRun=true"})


@main_with_error_handling()
def run_command(
    tokens: Sequence[str],
    *,
    workflow: str | None = None,
    output: str = "text",
    only: Sequence[str] | None = None,
    settings: Settings | None = None,
    collaborators: Collaborators | None = None,
) -> int:
    """Run the refresh workflow and return its exit code."""
    settings = settings or get_settings()
    explicit, skip = parse_invocation(tokens)
    steps = _select_steps(workflow, only)
    _confirm_live_run(explicit)

    collaborators = collaborators or azure_collaborators(settings)
    sequencer = Sequencer(
        register_default_handlers(StepRegistry()),
        collaborators,
        ParameterResolver(ParameterDetector(collaborators.directory), settings),
        settings,
    )
    bind_context(run_id=uuid.uuid4().hex[:12])
    run = asyncio.run(sequencer.run(steps, explicit, skip))

    if output == "json":
        print(render_json(run, sequencer.recorder.actions))
    else:
        render_text(run, sequencer.recorder.actions)
    return int(run.exit_code)


@main_with_error_handling()
def steps_command(workflow: str | None = None) -> int:
    steps = _select_steps(workflow, None)
    ux.print_table(
        "Workflow steps",
        ["#", "Step", "Name", "Skipped"],
        [[str(i), s.id, s.name, "yes" if s.skip else ""] for i, s in enumerate(steps, 1)],
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="envrefresh", description="Point-in-time environment refresh")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command")

    for name, help_text in (
        ("run", "Run the full refresh workflow"),
        ("restore", "Restore databases to a point in time only"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("params", nargs="*", metavar="Key=Value", help="Parameters, e.g. Source=prod DryRun=false")
        sub.add_argument("--workflow", help="YAML file defining the ordered step list")
        sub.add_argument("--output", choices=["text", "json"], default="text", help="Output format")

    steps_parser = subparsers.add_parser("steps", help="List workflow steps")
    steps_parser.add_argument("--workflow", help="YAML file defining the ordered step list")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level, json_logs=settings.json_logs)

    if args.command == "run":
        sys.exit(run_command(args.params, workflow=args.workflow, output=args.output))
    elif args.command == "restore":
        sys.exit(
            run_command(args.params, workflow=args.workflow, output=args.output, only=RESTORE_ONLY_STEPS)
        )
    elif args.command == "steps":
        sys.exit(steps_command(args.workflow))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
