"""Point-in-time restore orchestration."""

from envrefresh.restore.models import (
    BatchOutcome,
    BatchResult,
    ConflictReport,
    FailureCategory,
    RestoreRequest,
    RestoreTarget,
    TargetPhase,
    TargetResult,
    TargetStatus,
    ValidationOutcome,
)
from envrefresh.restore.orchestrator import RestorePointOrchestrator
from envrefresh.restore.polling import RestoreContext, Timing

__all__ = [
    "BatchOutcome",
    "BatchResult",
    "ConflictReport",
    "FailureCategory",
    "RestoreContext",
    "RestorePointOrchestrator",
    "RestoreRequest",
    "RestoreTarget",
    "TargetPhase",
    "TargetResult",
    "TargetStatus",
    "Timing",
    "ValidationOutcome",
]
