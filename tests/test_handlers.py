from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from envrefresh.controlplane import EnvironmentRef
from envrefresh.core.errors import CollaboratorError, ExitCode
from envrefresh.restore import BatchResult
from envrefresh.workflow import (
    Collaborators,
    ParameterDetector,
    ParameterInput,
    ParameterResolver,
    Sequencer,
    StepOutcome,
    StepRegistry,
    default_steps,
    register_default_handlers,
)
from fakes import NOW, FakeControlPlane, FakeDirectory, database_record

CORE = "db-mfg-sql-core-prod-eastus"
REPORTS = "db-mfg-sql-reports-prod-eastus"
YESTERDAY = (NOW - timedelta(days=1)).strftime("%Y-%m-%d %H:%M:%S")
SOURCE = EnvironmentRef("prod", "manufacturo")
DEST = EnvironmentRef("qa", "test")


def _account():
    account = AsyncMock()
    account.verify.return_value = "refresh@contoso.com"
    return account


def _collaborators(control_plane, **overrides):
    values = dict(
        directory=FakeDirectory([database_record("core"), database_record("reports")]),
        control_plane=control_plane,
        environment=AsyncMock(),
        data_copier=AsyncMock(),
        account=_account(),
        permissions=AsyncMock(),
    )
    values.update(overrides)
    if values["data_copier"] is not None:
        values["data_copier"].copy_attachments.return_value = 6
        values["data_copier"].copy_databases.return_value = 2
    if values["permissions"] is not None:
        values["permissions"].grant.return_value = 1
        values["permissions"].revoke.return_value = 1
    return Collaborators(**values)


def _sequencer(collaborators, settings, clock):
    resolver = ParameterResolver(
        ParameterDetector(collaborators.directory, environ={}), settings, now_fn=lambda: NOW
    )
    return Sequencer(
        register_default_handlers(StepRegistry()),
        collaborators,
        resolver,
        settings,
        timing=clock.timing(),
    )


def _params(**overrides):
    values = dict(
        Source="prod",
        Destination="qa",
        RestoreDateTime=YESTERDAY,
        Timezone="UTC",
        Cloud="AzureCloud",
        InstanceAlias="qa-eu",
    )
    values.update(overrides)
    return ParameterInput(**values)


@pytest.mark.asyncio
async def test_dry_run_previews_every_step_without_mutation(settings, clock):
    control_plane = FakeControlPlane(existing=[CORE, REPORTS])
    collaborators = _collaborators(control_plane)
    sequencer = _sequencer(collaborators, settings, clock)

    run = await sequencer.run(default_steps(), _params())

    assert run.exit_code == ExitCode.SUCCESS
    assert {r.outcome for r in run.results} == {StepOutcome.DRY_RUN_PREVIEW}
    assert control_plane.mutating_calls == 0
    collaborators.environment.stop.assert_not_awaited()
    collaborators.data_copier.copy_attachments.assert_not_awaited()
    collaborators.permissions.grant.assert_not_awaited()
    operations = [a.operation for a in sequencer.recorder.actions]
    assert operations.count("restore") == 2
    assert {"grant", "stop", "copy-attachments", "copy-database", "adjust", "start", "revoke"} <= set(operations)
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_dry_run_conflict_is_reported_as_would_fail(settings, clock):
    control_plane = FakeControlPlane(existing=[CORE, REPORTS, f"{CORE}-restored"])
    sequencer = _sequencer(_collaborators(control_plane), settings, clock)

    run = await sequencer.run(default_steps(), _params())

    restore = run.result_for("restore-point-in-time")
    assert restore.outcome == StepOutcome.FAILED
    assert isinstance(restore.data, BatchResult)
    assert restore.data.outcome.value == "DryRunWouldFail"
    assert run.exit_code == ExitCode.FAILURE
    # Later steps still preview.
    assert run.result_for("start-environment").outcome == StepOutcome.DRY_RUN_PREVIEW
    assert control_plane.mutating_calls == 0


@pytest.mark.asyncio
async def test_live_run_drives_every_collaborator(settings, clock):
    control_plane = FakeControlPlane(existing=[CORE, REPORTS])
    collaborators = _collaborators(control_plane)
    sequencer = _sequencer(collaborators, settings, clock)

    run = await sequencer.run(default_steps(), _params(DryRun=False))

    assert run.exit_code == ExitCode.SUCCESS, run.to_dict()
    assert {r.outcome for r in run.results} == {StepOutcome.SUCCEEDED}
    assert len(control_plane.restore_calls) == 2
    collaborators.account.verify.assert_awaited_once_with("AzureCloud")
    collaborators.environment.stop.assert_awaited_once_with(DEST)
    collaborators.environment.start.assert_awaited_once_with(DEST)
    collaborators.environment.adjust_resources.assert_awaited_once_with(DEST, "qa-eu")
    collaborators.data_copier.copy_attachments.assert_awaited_once_with(SOURCE, DEST, use_sas_tokens=False)
    collaborators.data_copier.copy_databases.assert_awaited_once_with(SOURCE, DEST)
    assert sorted(control_plane.delete_calls) == [f"{CORE}-restored", f"{REPORTS}-restored"]
    assert collaborators.permissions.grant.await_count == 2
    assert collaborators.permissions.revoke.await_count == 2
    # Permissions were added, so the propagation wait ran once.
    assert clock.sleeps[0] == 30.0


@pytest.mark.asyncio
async def test_no_propagation_wait_when_nothing_was_granted(settings, clock):
    collaborators = _collaborators(FakeControlPlane(existing=[CORE, REPORTS]))
    collaborators.permissions.grant.return_value = 0
    sequencer = _sequencer(collaborators, settings, clock)

    run = await sequencer.run(default_steps()[:2], _params(DryRun=False))

    assert run.success is True
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_permission_steps_are_skipped_when_not_configured(settings, clock):
    collaborators = _collaborators(FakeControlPlane(existing=[CORE, REPORTS]), permissions=None)
    sequencer = _sequencer(collaborators, settings, clock)

    run = await sequencer.run(default_steps()[:1], _params(DryRun=False))

    assert run.results[0].outcome == StepOutcome.SUCCEEDED
    assert "not configured" in run.results[0].detail


@pytest.mark.asyncio
async def test_grant_failure_aborts_the_run(settings, clock):
    collaborators = _collaborators(FakeControlPlane(existing=[CORE, REPORTS]))
    collaborators.permissions.grant.side_effect = CollaboratorError("HTTP 403")
    sequencer = _sequencer(collaborators, settings, clock)

    run = await sequencer.run(default_steps(), _params(DryRun=False))

    assert [r.id for r in run.results] == ["grant-permissions"]
    assert run.exit_code == ExitCode.PREREQUISITE


@pytest.mark.asyncio
async def test_missing_environment_control_is_fatal_in_live_run(settings, clock):
    collaborators = _collaborators(FakeControlPlane(existing=[CORE, REPORTS]), environment=None)
    sequencer = _sequencer(collaborators, settings, clock)

    run = await sequencer.run(default_steps(), _params(DryRun=False))

    assert run.results[-1].id == "stop-environment"
    assert run.exit_code == ExitCode.PREREQUISITE


@pytest.mark.asyncio
async def test_restore_timeout_continues_and_exits_four(settings, clock):
    control_plane = FakeControlPlane(existing=[CORE, REPORTS], scripts={f"{REPORTS}-restored": ["Restoring"]})
    sequencer = _sequencer(_collaborators(control_plane), settings, clock)

    run = await sequencer.run(default_steps(), _params(DryRun=False, MaxWaitMinutes=2))

    assert run.result_for("restore-point-in-time").outcome == StepOutcome.FAILED
    assert run.result_for("start-environment").outcome == StepOutcome.SUCCEEDED
    assert run.exit_code == ExitCode.TIMEOUT


@pytest.mark.asyncio
async def test_adjust_resources_without_alias_is_a_no_op(settings, clock):
    collaborators = _collaborators(FakeControlPlane(existing=[CORE, REPORTS]))
    sequencer = _sequencer(collaborators, settings, clock)
    steps = [s for s in default_steps() if s.id == "adjust-resources"]

    run = await sequencer.run(steps, _params(DryRun=False, InstanceAlias=None))

    assert run.results[0].outcome == StepOutcome.SUCCEEDED
    collaborators.environment.adjust_resources.assert_not_awaited()
