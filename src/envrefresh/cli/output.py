"""Rendering of workflow runs for the console and for machines."""

from __future__ import annotations

import json
from typing import Any

from envrefresh.cli import ux
from envrefresh.restore import BatchResult
from envrefresh.simulation import PlannedAction
from envrefresh.workflow import StepOutcome, WorkflowRun

OUTCOME_STYLE = {
    StepOutcome.SUCCEEDED: "success",
    StepOutcome.DRY_RUN_PREVIEW: "info",
    StepOutcome.SKIPPED: "muted",
    StepOutcome.FAILED: "error",
}


def run_to_dict(run: WorkflowRun, planned: list[PlannedAction]) -> dict[str, Any]:
    data = run.to_dict()
    for step, result in zip(data["steps"], run.results):
        if isinstance(result.data, BatchResult):
            step["restore"] = result.data.to_dict()
    data["planned_actions"] = [
        {"operation": a.operation, "target": a.target, "description": a.description} for a in planned
    ]
    return data


def render_json(run: WorkflowRun, planned: list[PlannedAction]) -> str:
    return json.dumps(run_to_dict(run, planned), indent=2, default=str)


def render_batch(batch: BatchResult) -> None:
    if batch.request is not None:
        ux.print_key_value(
            {
                "Environment": f"{batch.environment}/{batch.namespace}",
                "Restore point (UTC)": batch.request.resolved_utc_instant.isoformat(),
                "Adjusted": "yes" if batch.request.adjusted else "no",
                "Outcome": batch.outcome.value,
            },
            title="Restore batch",
        )
    if batch.targets:
        ux.print_table(
            "Targets",
            ["Database", "Restored copy", "Status", "Phase", "Elapsed", "Detail"],
            [
                [
                    t.name,
                    t.derived_name,
                    t.status.value,
                    t.phase.value if t.phase else "",
                    f"{t.elapsed_seconds:.0f}s",
                    t.detail,
                ]
                for t in batch.targets
            ],
        )
    for name in batch.skipped:
        ux.warning(f"Skipped {name}: name does not match convention")
    for conflict in sorted(batch.conflicts.conflicts):
        ux.error(f"Conflict: {conflict} already exists, delete it before retrying")
    for issue in batch.issues:
        ux.error(issue)


def render_text(run: WorkflowRun, planned: list[PlannedAction]) -> None:
    ux.header("Environment refresh" + (" (dry run)" if run.dry_run else ""))
    ux.print_table(
        "Steps",
        ["Step", "Outcome", "Duration", "Detail"],
        [
            [
                r.id,
                f"[{OUTCOME_STYLE[r.outcome]}]{r.outcome.value}[/{OUTCOME_STYLE[r.outcome]}]",
                f"{r.duration_seconds:.1f}s",
                r.detail,
            ]
            for r in run.results
        ],
    )
    for result in run.results:
        if isinstance(result.data, BatchResult):
            render_batch(result.data)

    if planned:
        ux.print_table(
            "Planned actions",
            ["Operation", "Target", "Description"],
            [[a.operation, a.target, a.description] for a in planned],
        )

    if run.success:
        ux.success("Refresh completed" if not run.dry_run else "Dry run clean")
    else:
        ux.error(f"Refresh {'would fail' if run.dry_run else 'failed'} (exit code {int(run.exit_code)})")
