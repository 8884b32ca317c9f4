"""
Restore point orchestrator.

Restores every database of an environment to one shared UTC instant:

    resolve timezone -> discover targets -> check conflicts ->
    validate retention window (adjusting once if needed) ->
    initiate restores in parallel -> poll completion in parallel -> aggregate

Conflict and retention failures refuse the whole batch before any restore
is issued. In dry-run mode the same phases run against a non-mutating
control-plane so validation outcomes are identical to a live run.
"""

from __future__ import annotations

from datetime import timedelta

import structlog

from envrefresh.config import Settings, get_settings
from envrefresh.controlplane import DatabaseControlPlane
from envrefresh.core.errors import PrerequisiteError, ValidationError
from envrefresh.directory import ResourceDirectory
from envrefresh.restore.conflicts import check_conflicts
from envrefresh.restore.discovery import discover_targets
from envrefresh.restore.models import (
    BatchOutcome,
    BatchResult,
    FailureCategory,
    RestoreTarget,
    TargetPhase,
    TargetResult,
    TargetStatus,
)
from envrefresh.restore.polling import (
    Initiation,
    RestoreContext,
    Timing,
    initiate_restore,
    wait_for_online,
)
from envrefresh.restore.pool import run_bounded
from envrefresh.restore.retention import load_retention, validate_window
from envrefresh.restore.timezone import resolve_restore_request
from envrefresh.simulation import ActionRecorder, DryRunControlPlane

logger = structlog.get_logger()


class RestorePointOrchestrator:
    """Drives a point-in-time restore batch for one environment."""

    def __init__(
        self,
        directory: ResourceDirectory,
        control_plane: DatabaseControlPlane,
        settings: Settings | None = None,
        *,
        timing: Timing | None = None,
        recorder: ActionRecorder | None = None,
    ) -> None:
        self._directory = directory
        self._control_plane = control_plane
        self._settings = settings or get_settings()
        self._timing = timing or Timing()
        self._recorder = recorder or ActionRecorder()

    async def restore(
        self,
        environment: str,
        namespace: str | None,
        local_datetime: str,
        timezone_id: str,
        max_wait_minutes: int = 60,
        concurrency_limit: int = 10,
        dry_run: bool = False,
    ) -> BatchResult:
        """Restore all targets of ``environment``/``namespace`` to one instant.

        Raises:
            PrerequisiteError: no restore target exists for the environment.
        """
        started = self._timing.monotonic()
        recorded_before = len(self._recorder)
        control_plane: DatabaseControlPlane = (
            DryRunControlPlane(self._control_plane, self._recorder)
            if dry_run
            else self._control_plane
        )
        result = BatchResult(
            environment=environment,
            namespace=namespace or "",
            dry_run=dry_run,
            outcome=BatchOutcome.DRY_RUN_CLEAN if dry_run else BatchOutcome.SUCCEEDED,
        )
        log = logger.bind(environment=environment, namespace=namespace, dry_run=dry_run)

        try:
            request = resolve_restore_request(local_datetime, timezone_id)
        except ValidationError as exc:
            return self._refuse(result, FailureCategory.VALIDATION, [exc.message], started)
        result.request = request
        log.info(
            "restore_point_resolved",
            local=local_datetime,
            timezone=timezone_id,
            utc=request.resolved_utc_instant.isoformat(),
        )

        report = await discover_targets(
            self._directory,
            environment,
            namespace,
            name_template=self._settings.database_name_template,
            excluded_patterns=self._settings.excluded_name_patterns,
            suffix=self._settings.restored_suffix,
        )
        result.skipped = report.skipped
        targets = report.targets
        if not targets:
            raise PrerequisiteError(
                "No restore targets found",
                {"environment": environment, "namespace": namespace, "skipped": len(report.skipped)},
            )

        conflicts = await check_conflicts(control_plane, targets)
        result.conflicts = conflicts
        if conflicts.has_conflicts:
            issues = [
                f"{name} already exists; remove it before restoring"
                for name in sorted(conflicts.conflicts)
            ]
            return self._refuse(result, FailureCategory.CONFLICT, issues, started)

        await load_retention(control_plane, targets)
        outcome = validate_window(
            targets,
            request.resolved_utc_instant,
            now_fn=self._timing.utcnow,
            propagation_delay=timedelta(minutes=self._settings.propagation_delay_minutes),
        )
        result.validation = outcome
        if not outcome.is_valid:
            return self._refuse(result, FailureCategory.VALIDATION, outcome.issues, started)
        if outcome.needs_adjustment and outcome.adjusted_instant is not None:
            request = request.with_adjusted_instant(outcome.adjusted_instant)
            result.request = request
            result.issues.extend(outcome.issues)

        context = RestoreContext(
            restore_instant=request.resolved_utc_instant,
            max_wait_seconds=max_wait_minutes * 60,
            poll_interval_seconds=self._settings.poll_interval_seconds,
        )

        async def initiate(target: RestoreTarget) -> Initiation:
            return await initiate_restore(control_plane, target, context, self._timing)

        initiations = await run_bounded(targets, initiate, concurrency_limit)

        if dry_run:
            for target in targets:
                self._recorder.record(
                    "wait",
                    target.derived_name,
                    f"Would wait up to {max_wait_minutes} min for {target.derived_name} to be Online",
                )
            result.targets = [
                TargetResult(
                    name=t.base_name,
                    derived_name=t.derived_name,
                    status=TargetStatus.PENDING,
                    detail="would restore",
                )
                for t in targets
            ]
            return self._finish(result, recorded_before, started)

        accepted = [i.target for i in initiations if i.accepted]

        async def wait(target: RestoreTarget) -> TargetResult:
            return await wait_for_online(control_plane, target, context, self._timing)

        waited = {r.derived_name: r for r in await run_bounded(accepted, wait, concurrency_limit)}

        for initiation in initiations:
            target = initiation.target
            if initiation.accepted:
                result.targets.append(waited[target.derived_name])
                continue
            target.status = TargetStatus.FAILED
            result.targets.append(
                TargetResult(
                    name=target.base_name,
                    derived_name=target.derived_name,
                    status=TargetStatus.FAILED,
                    phase=TargetPhase.INITIATION,
                    elapsed_seconds=initiation.elapsed_seconds,
                    detail=initiation.error or "restore request rejected",
                )
            )

        failed = result.failed_targets
        if failed:
            result.outcome = BatchOutcome.FAILED
            if any(t.status == TargetStatus.TIMED_OUT for t in failed):
                result.failure = FailureCategory.TIMEOUT
            elif all(t.phase == TargetPhase.INITIATION for t in failed):
                result.failure = FailureCategory.INITIATION
            else:
                result.failure = FailureCategory.RESTORE
            result.issues.extend(
                f"{t.derived_name}: {t.status.value} during {t.phase.value if t.phase else 'restore'}"
                f" - {t.detail}"
                for t in failed
            )
        return self._finish(result, recorded_before, started)

    def _refuse(
        self,
        result: BatchResult,
        category: FailureCategory,
        issues: list[str],
        started: float,
    ) -> BatchResult:
        result.outcome = BatchOutcome.DRY_RUN_WOULD_FAIL if result.dry_run else BatchOutcome.FAILED
        result.failure = category
        result.issues.extend(issues)
        for issue in issues:
            logger.error("restore_refused", category=category.value, issue=issue)
        result.duration_seconds = self._timing.monotonic() - started
        return result

    def _finish(self, result: BatchResult, recorded_before: int, started: float) -> BatchResult:
        result.planned_actions = self._recorder.since(recorded_before)
        result.duration_seconds = self._timing.monotonic() - started
        logger.info(
            "restore_batch_finished",
            environment=result.environment,
            outcome=result.outcome.value,
            online=len(result.succeeded_targets),
            failed=len(result.failed_targets),
            duration_seconds=round(result.duration_seconds, 1),
        )
        return result
