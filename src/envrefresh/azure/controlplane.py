"""Azure SQL database control-plane over ``az sql``."""

from __future__ import annotations

import re
from datetime import datetime, timezone

import structlog

from envrefresh.azure.runner import AzCli, AzNotFoundError
from envrefresh.config import Settings, get_settings
from envrefresh.controlplane import DatabaseRef, DatabaseStatus, ServerRef
from envrefresh.core.errors import CollaboratorError

logger = structlog.get_logger()

RESTORE_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S"
FRACTION = re.compile(r"\.(\d+)")


def _server_args(server: ServerRef) -> list[str]:
    return [
        "--subscription",
        server.subscription_id,
        "--resource-group",
        server.resource_group,
        "--server",
        server.server,
    ]


def parse_timestamp(value: str) -> datetime:
    """Parse an ARM timestamp (``2024-01-01T00:00:00Z`` style) as aware UTC."""
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # ARM may emit 7 fractional digits; fromisoformat accepts at most 6.
    text = FRACTION.sub(lambda m: "." + m.group(1)[:6], text)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class AzSqlControlPlane:
    def __init__(self, az: AzCli, settings: Settings | None = None) -> None:
        self._az = az
        self._settings = settings or get_settings()

    async def list_databases(self, server: ServerRef) -> list[str]:
        databases = await self._az.run("sql", "db", "list", *_server_args(server))
        return [str(db["name"]) for db in databases or []]

    async def earliest_restore_point(self, database: DatabaseRef) -> datetime:
        info = await self._az.run(
            "sql", "db", "show", *_server_args(database.server), "--name", database.name
        )
        value = (info or {}).get("earliestRestoreDate")
        if not value:
            raise CollaboratorError(
                f"No earliest restore point reported for {database.name}",
                {"server": database.server.server},
            )
        return parse_timestamp(value)

    async def restore(self, source: DatabaseRef, dest_name: str, point_in_time: datetime) -> None:
        point = point_in_time.astimezone(timezone.utc).strftime(RESTORE_TIME_FORMAT)
        await self._az.run(
            "sql",
            "db",
            "restore",
            *_server_args(source.server),
            "--name",
            source.name,
            "--dest-name",
            dest_name,
            "--edition",
            self._settings.restore_edition,
            "--service-objective",
            self._settings.restore_service_objective,
            "--time",
            point,
            "--no-wait",
        )
        logger.info("restore_submitted", source=source.name, destination=dest_name, time=point)

    async def get_status(self, database: DatabaseRef) -> DatabaseStatus:
        try:
            status = await self._az.run(
                "sql",
                "db",
                "show",
                *_server_args(database.server),
                "--name",
                database.name,
                "--query",
                "status",
            )
        except AzNotFoundError:
            return DatabaseStatus.NOT_FOUND
        return DatabaseStatus.parse(status if isinstance(status, str) else None)

    async def get_state(self, database: DatabaseRef) -> DatabaseStatus:
        status = await self._az.run(
            "sql",
            "db",
            "list",
            *_server_args(database.server),
            "--query",
            f"[?name=='{database.name}'].status | [0]",
        )
        return DatabaseStatus.parse(status if isinstance(status, str) else None)

    async def delete(self, database: DatabaseRef) -> None:
        await self._az.run(
            "sql", "db", "delete", *_server_args(database.server), "--name", database.name, "--yes"
        )
        logger.info("database_deleted", database=database.name, server=database.server.server)

    async def copy(self, source: DatabaseRef, destination: DatabaseRef) -> None:
        await self._az.run(
            "sql",
            "db",
            "copy",
            *_server_args(source.server),
            "--name",
            source.name,
            "--dest-server",
            destination.server.server,
            "--dest-resource-group",
            destination.server.resource_group,
            "--dest-name",
            destination.name,
        )
        logger.info("database_copied", source=source.name, destination=destination.name)
