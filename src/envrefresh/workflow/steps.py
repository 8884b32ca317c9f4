"""Step definitions, step results and the aggregate workflow run."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from envrefresh.core.errors import ConfigurationError, ExitCode, exit_code_for


class StepOutcome(str, Enum):
    SKIPPED = "Skipped"
    DRY_RUN_PREVIEW = "DryRunPreview"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


@dataclass(frozen=True)
class StepDefinition:
    id: str
    name: str
    skip: bool = False


@dataclass
class StepResult:
    id: str
    outcome: StepOutcome
    detail: str = ""
    duration_seconds: float = 0.0
    exit_code: ExitCode = ExitCode.SUCCESS
    data: Any = None

    @property
    def failed(self) -> bool:
        return self.outcome == StepOutcome.FAILED


@dataclass
class WorkflowRun:
    """Ordered step results plus the overall verdict."""

    results: list[StepResult] = field(default_factory=list)
    fatal_error: BaseException | None = None
    dry_run: bool = False

    @property
    def success(self) -> bool:
        return self.fatal_error is None and not any(r.failed for r in self.results)

    @property
    def exit_code(self) -> ExitCode:
        if self.fatal_error is not None:
            return exit_code_for(self.fatal_error)
        for result in self.results:
            if result.failed:
                return result.exit_code
        return ExitCode.SUCCESS

    def result_for(self, step_id: str) -> StepResult | None:
        return next((r for r in self.results if r.id == step_id), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "exit_code": int(self.exit_code),
            "dry_run": self.dry_run,
            "fatal_error": str(self.fatal_error) if self.fatal_error else None,
            "steps": [
                {
                    "id": r.id,
                    "outcome": r.outcome.value,
                    "detail": r.detail,
                    "duration_seconds": round(r.duration_seconds, 1),
                }
                for r in self.results
            ],
        }


DEFAULT_STEPS: tuple[StepDefinition, ...] = (
    StepDefinition("grant-permissions", "Grant Permissions"),
    StepDefinition("connect", "Connect to Azure"),
    StepDefinition("restore-point-in-time", "Restore Point in Time"),
    StepDefinition("stop-environment", "Stop Environment"),
    StepDefinition("copy-attachments", "Copy Attachments"),
    StepDefinition("copy-database", "Copy Database"),
    StepDefinition("adjust-resources", "Adjust Resources"),
    StepDefinition("start-environment", "Start Environment"),
    StepDefinition("cleanup-restored", "Cleanup Restored Databases"),
    StepDefinition("remove-permissions", "Remove Permissions"),
)


def default_steps() -> list[StepDefinition]:
    return list(DEFAULT_STEPS)


def load_workflow(path: str | Path) -> list[StepDefinition]:
    """Load an ordered step list from a YAML workflow file.

    Expected shape::

        steps:
          - id: restore-point-in-time
            name: Restore Point in Time
            skip: false
    """
    workflow_path = Path(path)
    if not workflow_path.exists():
        raise ConfigurationError(f"Workflow file not found: {workflow_path}")

    with open(workflow_path) as f:
        data = yaml.safe_load(f) or {}

    entries = data.get("steps") if isinstance(data, dict) else None
    if not isinstance(entries, list) or not entries:
        raise ConfigurationError("Workflow file must define a non-empty 'steps' list", {"path": str(workflow_path)})

    steps: list[StepDefinition] = []
    for entry in entries:
        if isinstance(entry, str):
            steps.append(StepDefinition(id=entry, name=entry))
            continue
        if not isinstance(entry, dict) or not entry.get("id"):
            raise ConfigurationError("Each workflow step needs an 'id'", {"entry": entry})
        steps.append(
            StepDefinition(
                id=str(entry["id"]),
                name=str(entry.get("name", entry["id"])),
                skip=bool(entry.get("skip", False)),
            )
        )
    return steps
