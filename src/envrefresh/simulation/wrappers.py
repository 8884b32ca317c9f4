"""
Non-mutating twins of the collaborator contracts.

Read-only calls are forwarded to the wrapped collaborator so every check
still runs against real state; mutating calls are recorded and dropped.
"""

from __future__ import annotations

from datetime import datetime

from envrefresh.controlplane import (
    DatabaseControlPlane,
    DatabaseRef,
    DatabaseStatus,
    DataCopier,
    EnvironmentControl,
    EnvironmentRef,
    PermissionGranter,
    ServerRef,
)
from envrefresh.simulation.recorder import ActionRecorder


class DryRunControlPlane:
    """Database control-plane that never restores or deletes."""

    def __init__(self, inner: DatabaseControlPlane, recorder: ActionRecorder) -> None:
        self._inner = inner
        self._recorder = recorder

    async def list_databases(self, server: ServerRef) -> list[str]:
        return await self._inner.list_databases(server)

    async def earliest_restore_point(self, database: DatabaseRef) -> datetime:
        return await self._inner.earliest_restore_point(database)

    async def get_status(self, database: DatabaseRef) -> DatabaseStatus:
        return await self._inner.get_status(database)

    async def get_state(self, database: DatabaseRef) -> DatabaseStatus:
        return await self._inner.get_state(database)

    async def restore(self, source: DatabaseRef, dest_name: str, point_in_time: datetime) -> None:
        self._recorder.record(
            "restore",
            dest_name,
            f"Would restore {dest_name} from {source.name} at {point_in_time.isoformat()}",
            server=source.server.server,
            point_in_time=point_in_time.isoformat(),
        )

    async def delete(self, database: DatabaseRef) -> None:
        self._recorder.record(
            "delete",
            database.name,
            f"Would delete {database.name} from {database.server.server}",
            server=database.server.server,
        )


class DryRunEnvironmentControl:
    def __init__(self, inner: EnvironmentControl | None, recorder: ActionRecorder) -> None:
        self._inner = inner
        self._recorder = recorder

    async def stop(self, environment: EnvironmentRef) -> None:
        self._recorder.record("stop", str(environment), f"Would stop environment {environment}")

    async def start(self, environment: EnvironmentRef) -> None:
        self._recorder.record("start", str(environment), f"Would start environment {environment}")

    async def adjust_resources(self, environment: EnvironmentRef, instance_alias: str) -> None:
        self._recorder.record(
            "adjust",
            str(environment),
            f"Would adjust resources of {environment} for instance alias {instance_alias}",
            instance_alias=instance_alias,
        )


class DryRunDataCopier:
    def __init__(self, inner: DataCopier | None, recorder: ActionRecorder) -> None:
        self._inner = inner
        self._recorder = recorder

    async def copy_attachments(
        self,
        source: EnvironmentRef,
        destination: EnvironmentRef,
        *,
        use_sas_tokens: bool = False,
    ) -> int:
        self._recorder.record(
            "copy-attachments",
            str(destination),
            f"Would copy attachments from {source} to {destination}",
            use_sas_tokens=use_sas_tokens,
        )
        return 0

    async def copy_databases(self, source: EnvironmentRef, destination: EnvironmentRef) -> int:
        self._recorder.record(
            "copy-database",
            str(destination),
            f"Would copy restored databases from {source} to {destination}",
        )
        return 0


class DryRunPermissionGranter:
    def __init__(self, inner: PermissionGranter | None, recorder: ActionRecorder) -> None:
        self._inner = inner
        self._recorder = recorder

    async def grant(self, environment: str, account: str) -> int:
        self._recorder.record(
            "grant", environment, f"Would grant {account} access to {environment}"
        )
        return 0

    async def revoke(self, environment: str, account: str) -> int:
        self._recorder.record(
            "revoke", environment, f"Would remove {account} access to {environment}"
        )
        return 0
