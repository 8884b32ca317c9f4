"""Dry-run simulation layer."""

from envrefresh.simulation.recorder import ActionRecorder, PlannedAction
from envrefresh.simulation.wrappers import (
    DryRunControlPlane,
    DryRunDataCopier,
    DryRunEnvironmentControl,
    DryRunPermissionGranter,
)

__all__ = [
    "ActionRecorder",
    "DryRunControlPlane",
    "DryRunDataCopier",
    "DryRunEnvironmentControl",
    "DryRunPermissionGranter",
    "PlannedAction",
]
