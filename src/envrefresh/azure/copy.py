"""Blob and database copy between environments."""

from __future__ import annotations

import re
from datetime import timedelta

import structlog

from envrefresh.azure.controlplane import AzSqlControlPlane
from envrefresh.azure.directory import AzResourceDirectory, find_primary
from envrefresh.azure.runner import AzCli, run_process
from envrefresh.config import Settings, get_settings
from envrefresh.controlplane import DatabaseRef, DatabaseStatus, EnvironmentRef, ServerRef
from envrefresh.core.errors import CollaboratorError, PrerequisiteError
from envrefresh.restore.discovery import discover_targets
from envrefresh.restore.polling import utcnow

logger = structlog.get_logger()

STORAGE_TYPE = "Microsoft.Storage/storageAccounts"
SERVER_TYPE = "Microsoft.Sql/servers"


def retarget_name(name: str, source: str, destination: str) -> str:
    """Swap the environment segment of a conventional name."""
    pattern = re.compile(rf"(?<=-){re.escape(source)}(?=-|$)", re.IGNORECASE)
    return pattern.sub(destination, name, count=1)


class AzDataCopier:
    def __init__(
        self,
        az: AzCli,
        directory: AzResourceDirectory,
        control_plane: AzSqlControlPlane,
        settings: Settings | None = None,
    ) -> None:
        self._az = az
        self._directory = directory
        self._control_plane = control_plane
        self._settings = settings or get_settings()

    async def _storage(self, environment: EnvironmentRef) -> tuple[str, str]:
        account = await find_primary(self._directory, environment.name, STORAGE_TYPE)
        if account is None:
            raise PrerequisiteError(f"No primary storage account found for {environment.name}")
        endpoint = await self._az.run(
            "storage",
            "account",
            "show",
            "--name",
            account.name,
            "--resource-group",
            account.resource_group,
            "--query",
            "primaryEndpoints.blob",
        )
        return account.name, str(endpoint)

    async def _sas(self, account: str, container: str) -> str:
        expiry = (utcnow() + timedelta(hours=self._settings.sas_expiry_hours)).strftime("%Y-%m-%dT%H:%MZ")
        token = await self._az.run(
            "storage",
            "container",
            "generate-sas",
            "--account-name",
            account,
            "--name",
            container,
            "--permissions",
            "acdlrw",
            "--expiry",
            expiry,
            "--auth-mode",
            "login",
            "--as-user",
        )
        return str(token).strip('"')

    async def copy_attachments(
        self,
        source: EnvironmentRef,
        destination: EnvironmentRef,
        *,
        use_sas_tokens: bool = False,
    ) -> int:
        source_account, source_blob = await self._storage(source)
        dest_account, dest_blob = await self._storage(destination)
        copied = 0
        for container in self._settings.attachment_containers:
            source_url = f"{source_blob}{container}"
            dest_url = f"{dest_blob}{container}"
            if use_sas_tokens:
                source_url += f"?{await self._sas(source_account, container)}"
                dest_url += f"?{await self._sas(dest_account, container)}"
            status, _, stderr = await run_process(
                [self._settings.azcopy_path, "copy", source_url, dest_url, "--recursive"]
            )
            if status != 0:
                raise CollaboratorError(
                    f"azcopy failed for container {container}",
                    {"exit_status": status, "stderr": stderr[:300]},
                )
            logger.info("container_copied", container=container, source=source_account, destination=dest_account)
            copied += 1
        return copied

    async def _server(self, environment: EnvironmentRef) -> ServerRef:
        server = await find_primary(self._directory, environment.name, SERVER_TYPE)
        if server is None:
            raise PrerequisiteError(f"No primary SQL server found for {environment.name}")
        return ServerRef(server.subscription_id, server.resource_group, server.name)

    async def copy_databases(self, source: EnvironmentRef, destination: EnvironmentRef) -> int:
        """Copy each restored source database over its destination counterpart."""
        settings = self._settings
        report = await discover_targets(
            self._directory,
            source.name,
            source.namespace,
            name_template=settings.database_name_template,
            excluded_patterns=settings.excluded_name_patterns,
            suffix=settings.restored_suffix,
        )
        dest_server = await self._server(destination)
        copied = 0
        for target in report.targets:
            if await self._control_plane.get_status(target.derived) == DatabaseStatus.NOT_FOUND:
                logger.warning("restored_copy_missing", database=target.derived_name)
                continue
            dest_ref = DatabaseRef(dest_server, retarget_name(target.base_name, source.name, destination.name))
            if dest_ref == target.source:
                raise PrerequisiteError(
                    f"Copy destination resolves to the source database {target.base_name}",
                    {"source": str(source), "destination": str(destination)},
                )
            if await self._control_plane.get_status(dest_ref) != DatabaseStatus.NOT_FOUND:
                await self._control_plane.delete(dest_ref)
            await self._control_plane.copy(target.derived, dest_ref)
            copied += 1
        return copied
