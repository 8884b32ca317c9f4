"""Pre-flight check that no derived database already exists."""

from __future__ import annotations

from typing import Sequence

import structlog

from envrefresh.controlplane import DatabaseControlPlane, ServerRef
from envrefresh.restore.models import ConflictReport, RestoreTarget

logger = structlog.get_logger()


async def check_conflicts(
    control_plane: DatabaseControlPlane,
    targets: Sequence[RestoreTarget],
) -> ConflictReport:
    """Return the derived names that already exist.

    Existing databases are listed once per server; the check is read-only
    and therefore repeatable.
    """
    servers: list[ServerRef] = []
    for target in targets:
        if target.source.server not in servers:
            servers.append(target.source.server)

    existing: set[str] = set()
    for server in servers:
        names = await control_plane.list_databases(server)
        existing.update(name.lower() for name in names)

    conflicts = frozenset(t.derived_name for t in targets if t.derived_name.lower() in existing)
    if conflicts:
        logger.warning("restore_conflicts_found", conflicts=sorted(conflicts))
    return ConflictReport(conflicts=conflicts)
