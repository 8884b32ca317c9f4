"""Per-target restore initiation and completion polling workers."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable

import structlog

from envrefresh.controlplane import DatabaseControlPlane, DatabaseRef, DatabaseStatus
from envrefresh.core.errors import TransientPollError
from envrefresh.restore.models import RestoreTarget, TargetPhase, TargetResult, TargetStatus

logger = structlog.get_logger()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Timing:
    """Clock and sleep sources, injectable so tests control time."""

    monotonic: Callable[[], float] = time.monotonic
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    utcnow: Callable[[], datetime] = field(default=utcnow)


@dataclass(frozen=True)
class RestoreContext:
    """Snapshot captured once before fan-out and shared read-only by workers."""

    restore_instant: datetime
    max_wait_seconds: float
    poll_interval_seconds: float


@dataclass
class Initiation:
    target: RestoreTarget
    accepted: bool
    error: str | None = None
    elapsed_seconds: float = 0.0


async def initiate_restore(
    control_plane: DatabaseControlPlane,
    target: RestoreTarget,
    context: RestoreContext,
    timing: Timing,
) -> Initiation:
    """Issue one non-blocking restore request."""
    started = timing.monotonic()
    try:
        await control_plane.restore(target.source, target.derived_name, context.restore_instant)
    except Exception as exc:
        logger.error(
            "restore_initiation_failed",
            target=target.base_name,
            derived=target.derived_name,
            error=str(exc),
        )
        return Initiation(
            target=target,
            accepted=False,
            error=str(exc),
            elapsed_seconds=timing.monotonic() - started,
        )
    logger.info(
        "restore_initiated",
        target=target.base_name,
        derived=target.derived_name,
        point_in_time=context.restore_instant.isoformat(),
    )
    return Initiation(target=target, accepted=True, elapsed_seconds=timing.monotonic() - started)


async def _primary_status(control_plane: DatabaseControlPlane, ref: DatabaseRef) -> DatabaseStatus:
    try:
        return await control_plane.get_status(ref)
    except Exception as exc:
        raise TransientPollError(f"status query failed for {ref.name}: {exc}") from exc


async def _secondary_status(
    control_plane: DatabaseControlPlane, ref: DatabaseRef
) -> DatabaseStatus | None:
    try:
        return await control_plane.get_state(ref)
    except Exception as exc:
        logger.debug("state_query_failed", database=ref.name, error=str(exc))
        return None


async def query_status(control_plane: DatabaseControlPlane, ref: DatabaseRef) -> DatabaseStatus | None:
    """Status of a database, consulting the secondary path when inconclusive.

    Returns None when neither path produced an answer this tick.
    """
    primary: DatabaseStatus | None
    try:
        primary = await _primary_status(control_plane, ref)
    except TransientPollError as exc:
        logger.warning("status_query_failed", database=ref.name, error=exc.message)
        primary = None

    if primary is not None and not primary.is_inconclusive:
        return primary

    secondary = await _secondary_status(control_plane, ref)
    if secondary is not None and not secondary.is_inconclusive:
        return secondary
    return primary


async def wait_for_online(
    control_plane: DatabaseControlPlane,
    target: RestoreTarget,
    context: RestoreContext,
    timing: Timing,
) -> TargetResult:
    """Poll one derived database until Online, failed, or out of time."""
    ref = target.derived
    started = timing.monotonic()
    seen = False
    attempt = 0
    last: DatabaseStatus | None = None

    while True:
        attempt += 1
        status = await query_status(control_plane, ref)
        elapsed = timing.monotonic() - started

        if status is not None:
            last = status
            if status != DatabaseStatus.NOT_FOUND:
                seen = True
            if status == DatabaseStatus.ONLINE:
                target.status = TargetStatus.ONLINE
                logger.info("target_online", derived=target.derived_name, elapsed_seconds=elapsed)
                return TargetResult(
                    name=target.base_name,
                    derived_name=target.derived_name,
                    status=TargetStatus.ONLINE,
                    elapsed_seconds=elapsed,
                    detail=f"Online after {elapsed:.0f}s",
                )
            if status.is_terminal_failure:
                target.status = TargetStatus.FAILED
                logger.error("target_failed", derived=target.derived_name, status=status.value)
                return TargetResult(
                    name=target.base_name,
                    derived_name=target.derived_name,
                    status=TargetStatus.FAILED,
                    phase=TargetPhase.WAITING,
                    elapsed_seconds=elapsed,
                    detail=f"status {status.value}",
                )
            if status != DatabaseStatus.NOT_FOUND:
                target.status = TargetStatus.RESTORING

        logger.debug(
            "target_waiting",
            derived=target.derived_name,
            attempt=attempt,
            status=status.value if status else None,
        )

        if elapsed >= context.max_wait_seconds:
            target.status = TargetStatus.TIMED_OUT
            phase = TargetPhase.WAITING if seen else TargetPhase.INITIATION
            minutes = context.max_wait_seconds / 60
            logger.error(
                "target_timed_out",
                derived=target.derived_name,
                phase=phase.value,
                last_status=last.value if last else None,
            )
            return TargetResult(
                name=target.base_name,
                derived_name=target.derived_name,
                status=TargetStatus.TIMED_OUT,
                phase=phase,
                elapsed_seconds=elapsed,
                detail=(
                    f"did not reach Online within {minutes:.0f} min "
                    f"(last status: {last.value if last else 'unknown'})"
                ),
            )

        await timing.sleep(min(context.poll_interval_seconds, context.max_wait_seconds - elapsed))
