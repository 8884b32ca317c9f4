import pytest

from envrefresh.core.errors import (
    AuthenticationError,
    ConflictError,
    ExitCode,
    RestoreTimeoutError,
)
from envrefresh.workflow import (
    Collaborators,
    ParameterDetector,
    ParameterInput,
    ParameterResolver,
    Sequencer,
    StepDefinition,
    StepOutcome,
    StepRegistry,
    register_default_handlers,
)
from fakes import NOW, FakeControlPlane, FakeDirectory, database_record


class RecordingHandler:
    def __init__(self, step_id, calls, error=None):
        self.id = step_id
        self.display_name = step_id
        self._calls = calls
        self._error = error

    async def execute(self, ctx):
        self._calls.append(self.id)
        if self._error is not None:
            raise self._error
        return f"{self.id} done"


def _sequencer(settings, clock, handlers, directory=None):
    registry = StepRegistry()
    for handler in handlers:
        registry.register(handler)
    directory = directory or FakeDirectory([])
    resolver = ParameterResolver(ParameterDetector(directory, environ={}), settings, now_fn=lambda: NOW)
    return Sequencer(
        registry,
        Collaborators(directory=directory, control_plane=FakeControlPlane()),
        resolver,
        settings,
        timing=clock.timing(),
    )


def _steps(*ids):
    return [StepDefinition(i, i) for i in ids]


LIVE = ParameterInput(Source="prod", Destination="qa", DryRun=False, Cloud="AzureCloud", InstanceAlias="x")


@pytest.mark.asyncio
async def test_steps_run_in_order(settings, clock):
    calls = []
    sequencer = _sequencer(settings, clock, [RecordingHandler(i, calls) for i in ("a", "b", "c")])

    run = await sequencer.run(_steps("a", "b", "c"), LIVE)

    assert calls == ["a", "b", "c"]
    assert [r.outcome for r in run.results] == [StepOutcome.SUCCEEDED] * 3
    assert run.exit_code == ExitCode.SUCCESS
    assert run.results[0].detail == "a done"


@pytest.mark.asyncio
async def test_skip_set_and_skip_flag_skip_steps(settings, clock):
    calls = []
    sequencer = _sequencer(settings, clock, [RecordingHandler(i, calls) for i in ("a", "b", "c")])
    steps = [StepDefinition("a", "a"), StepDefinition("b", "b", skip=True), StepDefinition("c", "c")]

    run = await sequencer.run(steps, LIVE, skip_set={"C"})

    assert calls == ["a"]
    assert [r.outcome for r in run.results] == [
        StepOutcome.SUCCEEDED,
        StepOutcome.SKIPPED,
        StepOutcome.SKIPPED,
    ]


@pytest.mark.asyncio
async def test_non_fatal_failure_continues_with_next_step(settings, clock):
    calls = []
    handlers = [
        RecordingHandler("a", calls, error=ConflictError("db-restored already exists")),
        RecordingHandler("b", calls),
    ]

    run = await _sequencer(settings, clock, handlers).run(_steps("a", "b"), LIVE)

    assert calls == ["a", "b"]
    assert run.results[0].outcome == StepOutcome.FAILED
    assert "already exists" in run.results[0].detail
    assert run.results[1].outcome == StepOutcome.SUCCEEDED
    assert run.fatal_error is None
    assert run.exit_code == ExitCode.FAILURE


@pytest.mark.asyncio
async def test_timeout_failure_exits_with_four(settings, clock):
    handlers = [RecordingHandler("a", [], error=RestoreTimeoutError("slow")), RecordingHandler("b", [])]

    run = await _sequencer(settings, clock, handlers).run(_steps("a", "b"), LIVE)

    assert run.exit_code == ExitCode.TIMEOUT


@pytest.mark.asyncio
async def test_fatal_failure_aborts_remaining_steps(settings, clock):
    calls = []
    handlers = [
        RecordingHandler("a", calls, error=AuthenticationError("token expired")),
        RecordingHandler("b", calls),
    ]

    run = await _sequencer(settings, clock, handlers).run(_steps("a", "b"), LIVE)

    assert calls == ["a"]
    assert [r.id for r in run.results] == ["a"]
    assert isinstance(run.fatal_error, AuthenticationError)
    assert run.exit_code == ExitCode.AUTHENTICATION


@pytest.mark.asyncio
async def test_unexpected_exception_is_recorded_as_failure(settings, clock):
    calls = []
    handlers = [RecordingHandler("a", calls, error=RuntimeError("boom")), RecordingHandler("b", calls)]

    run = await _sequencer(settings, clock, handlers).run(_steps("a", "b"), LIVE)

    assert calls == ["a", "b"]
    assert run.results[0].detail == "boom"
    assert run.exit_code == ExitCode.FAILURE


@pytest.mark.asyncio
@pytest.mark.parametrize("steps, skip", [(_steps("a", "nope"), ()), (_steps("a"), ("nope",))])
async def test_unknown_step_ids_abort_before_running(settings, clock, steps, skip):
    calls = []
    run = await _sequencer(settings, clock, [RecordingHandler("a", calls)]).run(steps, LIVE, skip)

    assert calls == []
    assert run.results == []
    assert run.exit_code == ExitCode.PREREQUISITE


@pytest.mark.asyncio
async def test_dry_run_marks_steps_as_previews(settings, clock):
    params = ParameterInput(Source="prod", Destination="qa", Cloud="AzureCloud", InstanceAlias="x")

    run = await _sequencer(settings, clock, [RecordingHandler("a", [])]).run(_steps("a"), params)

    assert run.dry_run is True
    assert run.results[0].outcome == StepOutcome.DRY_RUN_PREVIEW


@pytest.mark.asyncio
async def test_parameters_are_not_resolved_when_every_step_is_skipped(settings, clock):
    directory = FakeDirectory([])
    sequencer = _sequencer(settings, clock, [RecordingHandler("a", [])], directory=directory)

    run = await sequencer.run(_steps("a"), ParameterInput(), skip_set={"a"})

    assert run.exit_code == ExitCode.SUCCESS
    assert directory.queries == []


@pytest.mark.asyncio
async def test_unresolvable_parameters_are_fatal(settings, clock):
    calls = []
    sequencer = _sequencer(settings, clock, [RecordingHandler("a", calls), RecordingHandler("b", calls)])

    run = await sequencer.run(_steps("a", "b"), ParameterInput())

    assert calls == []
    assert run.results[0].outcome == StepOutcome.FAILED
    assert run.exit_code == ExitCode.PREREQUISITE


@pytest.mark.asyncio
async def test_skipping_a_registered_step_outside_the_selection_is_allowed(settings, clock):
    calls = []
    handlers = [RecordingHandler(i, calls) for i in ("a", "b")]

    run = await _sequencer(settings, clock, handlers).run(_steps("a"), LIVE, skip_set={"b"})

    assert calls == ["a"]
    assert run.exit_code == ExitCode.SUCCESS


@pytest.mark.asyncio
@pytest.mark.parametrize("restore_datetime", ["2024-05-31 12:00:00", None])
async def test_unknown_timezone_fails_the_restore_step_either_way(settings, clock, restore_datetime):
    directory = FakeDirectory([database_record("core"), database_record("reports")])
    control_plane = FakeControlPlane(existing=[database_record("core").name, database_record("reports").name])
    resolver = ParameterResolver(ParameterDetector(directory, environ={}), settings, now_fn=lambda: NOW)
    sequencer = Sequencer(
        register_default_handlers(StepRegistry()),
        Collaborators(directory=directory, control_plane=control_plane),
        resolver,
        settings,
        timing=clock.timing(),
    )
    params = ParameterInput(
        Source="prod",
        Destination="qa",
        Cloud="AzureCloud",
        Timezone="Mars/Base",
        RestoreDateTime=restore_datetime,
    )

    run = await sequencer.run(_steps("restore-point-in-time"), params)

    assert run.fatal_error is None
    assert run.exit_code == ExitCode.FAILURE
    result = run.result_for("restore-point-in-time")
    assert result.outcome == StepOutcome.FAILED
    assert "Unknown timezone" in result.detail
    assert control_plane.mutating_calls == 0
