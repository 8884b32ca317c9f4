"""Step handler protocol, run context and registry."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from envrefresh.config import Settings
from envrefresh.controlplane import (
    AccountSession,
    DatabaseControlPlane,
    DataCopier,
    EnvironmentControl,
    EnvironmentRef,
    PermissionGranter,
)
from envrefresh.core.errors import PrerequisiteError
from envrefresh.directory import ResourceDirectory
from envrefresh.restore.polling import Timing
from envrefresh.simulation import (
    ActionRecorder,
    DryRunControlPlane,
    DryRunDataCopier,
    DryRunEnvironmentControl,
    DryRunPermissionGranter,
)
from envrefresh.workflow.params import RefreshParameters


@dataclass
class Collaborators:
    """The external systems a run talks to. Optional ones may be absent."""

    directory: ResourceDirectory
    control_plane: DatabaseControlPlane
    environment: Optional[EnvironmentControl] = None
    data_copier: Optional[DataCopier] = None
    account: Optional[AccountSession] = None
    permissions: Optional[PermissionGranter] = None


@dataclass
class StepContext:
    """Shared context passed to all step handlers.

    Mutating collaborators are handed out through accessor methods so a dry
    run always receives the non-mutating twin.
    """

    params: RefreshParameters
    collaborators: Collaborators
    settings: Settings
    recorder: ActionRecorder
    timing: Timing
    outputs: Dict[str, Any] = field(default_factory=dict)

    @property
    def dry_run(self) -> bool:
        return self.params.dry_run

    @property
    def source_env(self) -> EnvironmentRef:
        return EnvironmentRef(self.params.source, self.params.source_namespace)

    @property
    def destination_env(self) -> EnvironmentRef:
        return EnvironmentRef(self.params.destination, self.params.destination_namespace)

    def control_plane(self) -> DatabaseControlPlane:
        if self.dry_run:
            return DryRunControlPlane(self.collaborators.control_plane, self.recorder)
        return self.collaborators.control_plane

    def environment_control(self) -> EnvironmentControl:
        if self.dry_run:
            return DryRunEnvironmentControl(self.collaborators.environment, self.recorder)
        return _require(self.collaborators.environment, "environment control")

    def data_copier(self) -> DataCopier:
        if self.dry_run:
            return DryRunDataCopier(self.collaborators.data_copier, self.recorder)
        return _require(self.collaborators.data_copier, "data copier")

    def permissions(self) -> PermissionGranter:
        if self.dry_run:
            return DryRunPermissionGranter(self.collaborators.permissions, self.recorder)
        return _require(self.collaborators.permissions, "permission endpoint")


def _require(collaborator: Any, what: str) -> Any:
    if collaborator is None:
        raise PrerequisiteError(f"No {what} is configured for this run")
    return collaborator


@runtime_checkable
class StepHandler(Protocol):
    """Protocol for one refresh step."""

    @property
    def id(self) -> str:
        """Step identifier (e.g. 'restore-point-in-time')."""
        ...

    @property
    def display_name(self) -> str:
        ...

    async def execute(self, ctx: StepContext) -> str:
        """Run the step and return a one-line detail for the summary."""
        ...


class StepRegistry:
    """In-memory registry for step handlers."""

    def __init__(self) -> None:
        self._handlers: Dict[str, StepHandler] = {}

    def register(self, handler: StepHandler) -> None:
        self._handlers[handler.id.lower()] = handler

    def get(self, step_id: str) -> Optional[StepHandler]:
        return self._handlers.get(step_id.lower())

    def list(self) -> List[str]:
        return list(self._handlers.keys())
