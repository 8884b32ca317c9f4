import json
from unittest.mock import AsyncMock

import pytest

from envrefresh.cli.main import RESTORE_ONLY_STEPS, build_parser, run_command, steps_command
from envrefresh.core.errors import ExitCode
from envrefresh.workflow import Collaborators
from fakes import FakeControlPlane, FakeDirectory, database_record

CORE = "db-mfg-sql-core-prod-eastus"
REPORTS = "db-mfg-sql-reports-prod-eastus"
PARAMS = [
    "Source=prod",
    "Cloud=AzureCloud",
    "InstanceAlias=prod-eu",
    "Timezone=UTC",
    "RestoreDateTime=2024-05-31 12:00:00",
]


@pytest.fixture(autouse=True)
def clean_environ(monkeypatch):
    monkeypatch.delenv("INSTANCE_ALIAS", raising=False)
    monkeypatch.delenv("ENVIRONMENT", raising=False)


def _collaborators(control_plane):
    account = AsyncMock()
    account.verify.return_value = "refresh@contoso.com"
    return Collaborators(
        directory=FakeDirectory([database_record("core"), database_record("reports")]),
        control_plane=control_plane,
        account=account,
    )


def test_restore_dry_run_reports_plan_as_json(settings, capsys):
    control_plane = FakeControlPlane(existing=[CORE, REPORTS])

    code = run_command(
        PARAMS,
        output="json",
        only=RESTORE_ONLY_STEPS,
        settings=settings,
        collaborators=_collaborators(control_plane),
    )

    assert code == ExitCode.SUCCESS
    data = json.loads(capsys.readouterr().out)
    assert data["dry_run"] is True
    assert [s["id"] for s in data["steps"]] == list(RESTORE_ONLY_STEPS)
    restore = data["steps"][1]["restore"]
    assert {t["derived_name"] for t in restore["targets"]} == {f"{CORE}-restored", f"{REPORTS}-restored"}
    assert [a["operation"] for a in data["planned_actions"]].count("restore") == 2
    assert control_plane.mutating_calls == 0


def test_conflicting_restored_copy_exits_with_failure(settings, capsys):
    control_plane = FakeControlPlane(existing=[CORE, REPORTS, f"{REPORTS}-restored"])

    code = run_command(
        PARAMS,
        output="json",
        only=RESTORE_ONLY_STEPS,
        settings=settings,
        collaborators=_collaborators(control_plane),
    )

    assert code == ExitCode.FAILURE
    data = json.loads(capsys.readouterr().out)
    assert data["success"] is False
    assert data["steps"][1]["outcome"] == "Failed"


def test_live_run_requires_confirmation(settings):
    control_plane = FakeControlPlane(existing=[CORE, REPORTS])

    code = run_command(
        [*PARAMS, "DryRun=false"],
        only=RESTORE_ONLY_STEPS,
        settings=settings,
        collaborators=_collaborators(control_plane),
    )

    assert code == ExitCode.PREREQUISITE
    assert control_plane.mutating_calls == 0


def test_malformed_parameter_is_configuration_error(settings):
    code = run_command(["Source"], settings=settings, collaborators=_collaborators(FakeControlPlane()))

    assert code == ExitCode.PREREQUISITE


def test_unknown_skip_step_is_rejected_before_any_call(settings):
    control_plane = FakeControlPlane(existing=[CORE, REPORTS])

    code = run_command(
        [*PARAMS, "SkipSteps=teleport"],
        settings=settings,
        collaborators=_collaborators(control_plane),
    )

    assert code == ExitCode.PREREQUISITE
    assert control_plane.list_calls == []


def test_steps_command_lists_default_workflow(capsys):
    assert steps_command() == 0
    out = capsys.readouterr().out
    assert "restore-point-in-time" in out
    assert "grant-permissions" in out


def test_parser_accepts_key_value_parameters():
    args = build_parser().parse_args(["restore", "Source=prod", "DryRun=true", "--output", "json"])

    assert args.command == "restore"
    assert args.params == ["Source=prod", "DryRun=true"]
    assert args.output == "json"


def test_restore_accepts_skip_of_a_step_it_does_not_run(settings, capsys):
    control_plane = FakeControlPlane(existing=[CORE, REPORTS])

    code = run_command(
        [*PARAMS, "SkipSteps=cleanup-restored"],
        output="json",
        only=RESTORE_ONLY_STEPS,
        settings=settings,
        collaborators=_collaborators(control_plane),
    )

    assert code == ExitCode.SUCCESS
    data = json.loads(capsys.readouterr().out)
    assert [s["id"] for s in data["steps"]] == list(RESTORE_ONLY_STEPS)
