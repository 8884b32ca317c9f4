"""Data model for point-in-time restore batches."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from envrefresh.controlplane import DatabaseRef
from envrefresh.core.errors import (
    ConflictError,
    RefreshError,
    RestoreTimeoutError,
    ValidationError,
)
from envrefresh.simulation import PlannedAction


class TargetStatus(str, Enum):
    PENDING = "Pending"
    RESTORING = "Restoring"
    ONLINE = "Online"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"


class TargetPhase(str, Enum):
    """Where a failed target stopped: never started vs. never finished."""

    INITIATION = "initiation"
    WAITING = "waiting"


class BatchOutcome(str, Enum):
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    DRY_RUN_CLEAN = "DryRunClean"
    DRY_RUN_WOULD_FAIL = "DryRunWouldFail"


class FailureCategory(str, Enum):
    VALIDATION = "validation"
    CONFLICT = "conflict"
    INITIATION = "initiation"
    TIMEOUT = "timeout"
    RESTORE = "restore"


@dataclass
class RestoreTarget:
    """A database selected for restore, plus the copy it will produce."""

    base_name: str
    derived_name: str
    service_tag: str | None
    source: DatabaseRef
    earliest_restore_point: datetime | None = None
    status: TargetStatus = TargetStatus.PENDING

    @property
    def derived(self) -> DatabaseRef:
        return DatabaseRef(server=self.source.server, name=self.derived_name)


@dataclass(frozen=True)
class RestoreRequest:
    """The requested restore point and the single UTC instant it resolves to."""

    local_datetime: str
    timezone_id: str
    resolved_utc_instant: datetime
    adjusted: bool = False

    def with_adjusted_instant(self, instant: datetime) -> "RestoreRequest":
        if self.adjusted:
            raise ValueError("restore instant has already been adjusted")
        return dataclasses.replace(self, resolved_utc_instant=instant, adjusted=True)


@dataclass(frozen=True)
class ConflictReport:
    """Derived names that already existed before the batch started."""

    conflicts: frozenset[str] = frozenset()

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)


@dataclass
class ValidationOutcome:
    is_valid: bool
    needs_adjustment: bool = False
    adjusted_instant: datetime | None = None
    invalid_targets: list[str] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)


@dataclass
class TargetResult:
    """Terminal state of one target within a batch."""

    name: str
    derived_name: str
    status: TargetStatus
    phase: TargetPhase | None = None
    elapsed_seconds: float = 0.0
    detail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status == TargetStatus.ONLINE

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "derived_name": self.derived_name,
            "status": self.status.value,
            "phase": self.phase.value if self.phase else None,
            "elapsed_seconds": round(self.elapsed_seconds, 1),
            "detail": self.detail,
        }


@dataclass
class BatchResult:
    """Outcome of restoring every target of an environment to one instant."""

    environment: str
    namespace: str
    dry_run: bool
    outcome: BatchOutcome
    request: RestoreRequest | None = None
    targets: list[TargetResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    conflicts: ConflictReport = field(default_factory=ConflictReport)
    validation: ValidationOutcome | None = None
    failure: FailureCategory | None = None
    issues: list[str] = field(default_factory=list)
    planned_actions: list[PlannedAction] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.outcome in (BatchOutcome.SUCCEEDED, BatchOutcome.DRY_RUN_CLEAN)

    @property
    def succeeded_targets(self) -> list[TargetResult]:
        return [t for t in self.targets if t.succeeded]

    @property
    def failed_targets(self) -> list[TargetResult]:
        return [
            t for t in self.targets if t.status in (TargetStatus.FAILED, TargetStatus.TIMED_OUT)
        ]

    def summary(self) -> str:
        if self.dry_run:
            if self.success:
                return f"Dry run clean: {len(self.planned_actions)} action(s) planned"
            return f"Dry run would fail ({self.failure.value if self.failure else 'unknown'})"
        if self.success:
            return f"{len(self.succeeded_targets)} database(s) restored"
        return (
            f"Restore failed ({self.failure.value if self.failure else 'unknown'}): "
            f"{len(self.succeeded_targets)}/{len(self.targets)} online"
        )

    def to_error(self) -> RefreshError | None:
        """The error a failed batch surfaces to the sequencer."""
        if self.success:
            return None
        details = {"environment": self.environment, "namespace": self.namespace}
        message = "; ".join(self.issues) or self.summary()
        if self.failure == FailureCategory.CONFLICT:
            return ConflictError(message, details)
        if self.failure == FailureCategory.VALIDATION:
            return ValidationError(message, details)
        if self.failure == FailureCategory.TIMEOUT:
            return RestoreTimeoutError(message, details)
        return RefreshError(message, details)

    def to_dict(self) -> dict[str, Any]:
        return {
            "environment": self.environment,
            "namespace": self.namespace,
            "dry_run": self.dry_run,
            "outcome": self.outcome.value,
            "restore_point": (
                self.request.resolved_utc_instant.isoformat() if self.request else None
            ),
            "adjusted": self.request.adjusted if self.request else False,
            "failure": self.failure.value if self.failure else None,
            "conflicts": sorted(self.conflicts.conflicts),
            "issues": self.issues,
            "skipped": self.skipped,
            "targets": [t.to_dict() for t in self.targets],
            "planned_actions": [a.description for a in self.planned_actions],
            "duration_seconds": round(self.duration_seconds, 1),
        }
