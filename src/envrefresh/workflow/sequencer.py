"""Runs an ordered list of refresh steps with a continue-on-error policy."""

from __future__ import annotations

from typing import Iterable, Sequence

import structlog

from envrefresh.config import Settings, get_settings
from envrefresh.core.errors import (
    ConfigurationError,
    RefreshError,
    exit_code_for,
    format_error_message,
    is_fatal,
)
from envrefresh.restore.polling import Timing
from envrefresh.simulation import ActionRecorder
from envrefresh.workflow.detection import ParameterResolver
from envrefresh.workflow.params import ParameterInput
from envrefresh.workflow.registry import Collaborators, StepContext, StepRegistry
from envrefresh.workflow.steps import StepDefinition, StepOutcome, StepResult, WorkflowRun

logger = structlog.get_logger()


class Sequencer:
    """Executes steps in order.

    A failing step is recorded and the run moves on. Fatal categories
    (authentication, prerequisite, configuration) stop the run at once.
    Parameters are resolved lazily, right before the first step that runs,
    so a run whose steps are all skipped never touches external state.
    """

    def __init__(
        self,
        registry: StepRegistry,
        collaborators: Collaborators,
        resolver: ParameterResolver,
        settings: Settings | None = None,
        *,
        timing: Timing | None = None,
        recorder: ActionRecorder | None = None,
    ) -> None:
        self._registry = registry
        self._collaborators = collaborators
        self._resolver = resolver
        self._settings = settings or get_settings()
        self._timing = timing or Timing()
        self.recorder = recorder or ActionRecorder()

    async def run(
        self,
        steps: Sequence[StepDefinition],
        global_params: ParameterInput,
        skip_set: Iterable[str] = (),
    ) -> WorkflowRun:
        skip = {s.lower() for s in skip_set}
        run = WorkflowRun(dry_run=global_params.dry_run is not False)

        unknown = sorted(
            {s.id for s in steps if self._registry.get(s.id) is None}
            | {s for s in skip if self._registry.get(s) is None}
        )
        if unknown:
            run.fatal_error = ConfigurationError(
                "Unknown step id(s): " + ", ".join(unknown),
                {"known": ", ".join(self._registry.list())},
            )
            logger.error("run_aborted", reason="unknown_steps", steps=unknown)
            return run

        ctx: StepContext | None = None
        total = len(steps)
        for position, definition in enumerate(steps, 1):
            log = logger.bind(step=definition.id, position=f"{position}/{total}")
            if definition.skip or definition.id.lower() in skip:
                log.info("step_skipped")
                run.results.append(StepResult(definition.id, StepOutcome.SKIPPED, "Skipped by request"))
                continue

            handler = self._registry.get(definition.id)
            started = self._timing.monotonic()
            try:
                if ctx is None:
                    ctx = await self._build_context(global_params)
                    run.dry_run = ctx.dry_run
                log.info("step_started", name=definition.name)
                detail = await handler.execute(ctx)
            except Exception as exc:
                elapsed = self._timing.monotonic() - started
                message = format_error_message(exc) if isinstance(exc, RefreshError) else str(exc)
                run.results.append(
                    StepResult(
                        definition.id,
                        StepOutcome.FAILED,
                        message,
                        elapsed,
                        exit_code=exit_code_for(exc),
                        data=ctx.outputs.get(definition.id) if ctx else None,
                    )
                )
                if is_fatal(exc):
                    log.error("run_aborted", error=message, error_type=type(exc).__name__)
                    run.fatal_error = exc
                    break
                log.error("step_failed", error=message, error_type=type(exc).__name__)
                continue

            elapsed = self._timing.monotonic() - started
            outcome = StepOutcome.DRY_RUN_PREVIEW if ctx.dry_run else StepOutcome.SUCCEEDED
            log.info("step_completed", outcome=outcome.value, detail=detail, duration_seconds=round(elapsed, 1))
            run.results.append(
                StepResult(definition.id, outcome, detail, elapsed, data=ctx.outputs.get(definition.id))
            )

        return run

    async def _build_context(self, global_params: ParameterInput) -> StepContext:
        params = await self._resolver.resolve(global_params)
        return StepContext(
            params=params,
            collaborators=self._collaborators,
            settings=self._settings,
            recorder=self.recorder,
            timing=self._timing,
        )
