"""Retention-window validation for a shared restore instant."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Sequence

import structlog

from envrefresh.controlplane import DatabaseControlPlane
from envrefresh.restore.models import RestoreTarget, ValidationOutcome

logger = structlog.get_logger()


async def load_retention(
    control_plane: DatabaseControlPlane,
    targets: Sequence[RestoreTarget],
) -> None:
    """Fill in each target's earliest restore point."""
    for target in targets:
        target.earliest_restore_point = await control_plane.earliest_restore_point(target.source)


def retention_days(earliest: datetime, now: datetime) -> float:
    return (now - earliest).total_seconds() / 86400


def _lower_bound_issues(
    targets: Sequence[RestoreTarget],
    instant: datetime,
    now_fn: Callable[[], datetime],
) -> tuple[list[str], list[str]]:
    invalid: list[str] = []
    issues: list[str] = []
    for target in targets:
        earliest = target.earliest_restore_point
        if earliest is None:
            invalid.append(target.base_name)
            issues.append(f"{target.base_name}: earliest restore point unavailable")
            continue
        if instant < earliest:
            days = retention_days(earliest, now_fn())
            invalid.append(target.base_name)
            issues.append(
                f"{target.base_name}: restore point {instant.isoformat()} is before the "
                f"earliest restore point {earliest.isoformat()} (RetentionDays={days:.0f})"
            )
    return invalid, issues


def validate_window(
    targets: Sequence[RestoreTarget],
    instant: datetime,
    *,
    now_fn: Callable[[], datetime],
    propagation_delay: timedelta,
) -> ValidationOutcome:
    """Check one instant against every target's retention window.

    Falling before any target's earliest restore point is a hard failure.
    Falling after ``now - propagation_delay`` for any target moves the
    shared instant to the minimum of that bound across all targets, which
    is then re-checked against the lower bounds.
    """
    invalid, issues = _lower_bound_issues(targets, instant, now_fn)
    if invalid:
        return ValidationOutcome(is_valid=False, invalid_targets=invalid, issues=issues)

    latest_safe = [now_fn() - propagation_delay for _ in targets]
    if not latest_safe or all(instant <= bound for bound in latest_safe):
        return ValidationOutcome(is_valid=True)

    adjusted = min(latest_safe)
    logger.warning(
        "restore_point_adjusted",
        requested=instant.isoformat(),
        adjusted=adjusted.isoformat(),
        propagation_delay_minutes=propagation_delay.total_seconds() / 60,
    )
    issues = [
        f"Restore point {instant.isoformat()} is later than now - "
        f"{propagation_delay.total_seconds() / 60:.0f} min; using {adjusted.isoformat()}"
    ]
    invalid, lower_issues = _lower_bound_issues(targets, adjusted, now_fn)
    return ValidationOutcome(
        is_valid=not invalid,
        needs_adjustment=True,
        adjusted_instant=adjusted,
        invalid_targets=invalid,
        issues=issues + lower_issues,
    )
