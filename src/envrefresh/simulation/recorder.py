"""Planned-action recording for dry runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class PlannedAction:
    """A mutating call that a dry run intercepted instead of issuing."""

    operation: str
    target: str
    description: str
    details: dict[str, Any] = field(default_factory=dict)


class ActionRecorder:
    """Collects planned actions in the order they were intercepted."""

    def __init__(self) -> None:
        self._actions: list[PlannedAction] = []

    def record(
        self,
        operation: str,
        target: str,
        description: str,
        **details: Any,
    ) -> PlannedAction:
        action = PlannedAction(
            operation=operation,
            target=target,
            description=description,
            details=details,
        )
        self._actions.append(action)
        logger.info("dry_run_action", operation=operation, target=target, **details)
        return action

    @property
    def actions(self) -> list[PlannedAction]:
        return list(self._actions)

    def since(self, index: int) -> list[PlannedAction]:
        """Actions recorded after ``index`` (used to attribute actions to a step)."""
        return self._actions[index:]

    def __len__(self) -> int:
        return len(self._actions)
