"""Concrete step handlers for the refresh workflow."""

from __future__ import annotations

import structlog

from envrefresh.controlplane import DatabaseStatus
from envrefresh.core.errors import CollaboratorError, PrerequisiteError
from envrefresh.restore import RestorePointOrchestrator
from envrefresh.restore.discovery import discover_targets
from envrefresh.workflow.registry import StepContext, StepRegistry

logger = structlog.get_logger()


def _permission_environments(ctx: StepContext) -> list[str]:
    environments = [ctx.params.source]
    if ctx.params.destination.lower() != ctx.params.source.lower():
        environments.append(ctx.params.destination)
    return environments


class GrantPermissionsHandler:
    """Grants the refresh service account access before anything else runs."""

    id = "grant-permissions"
    display_name = "Grant Permissions"

    async def execute(self, ctx: StepContext) -> str:
        if ctx.collaborators.permissions is None:
            logger.warning("permission_grant_not_configured")
            return "Permission endpoint not configured, nothing granted"

        granter = ctx.permissions()
        account = ctx.settings.service_account
        added = 0
        for environment in _permission_environments(ctx):
            try:
                added += await granter.grant(environment, account)
            except CollaboratorError as exc:
                raise PrerequisiteError(
                    f"Could not grant permissions to {account}",
                    {"environment": environment, "error": exc.message},
                ) from exc

        if added > 0 and not ctx.dry_run:
            # New role assignments take a moment to reach the control plane.
            logger.info("waiting_for_permission_propagation", seconds=ctx.settings.permission_propagation_seconds)
            await ctx.timing.sleep(ctx.settings.permission_propagation_seconds)
        return f"{added} permission(s) added for {account}"


class ConnectHandler:
    id = "connect"
    display_name = "Connect to Azure"

    async def execute(self, ctx: StepContext) -> str:
        account = ctx.collaborators.account
        if account is None:
            raise PrerequisiteError("No account session is configured for this run")
        name = await account.verify(ctx.params.cloud)
        return f"Signed in as {name} ({ctx.params.cloud})"


class RestorePointInTimeHandler:
    """Restores every database of the source environment to one instant."""

    id = "restore-point-in-time"
    display_name = "Restore Point in Time"

    async def execute(self, ctx: StepContext) -> str:
        params = ctx.params
        orchestrator = RestorePointOrchestrator(
            ctx.collaborators.directory,
            ctx.collaborators.control_plane,
            ctx.settings,
            timing=ctx.timing,
            recorder=ctx.recorder,
        )
        batch = await orchestrator.restore(
            params.source,
            params.source_namespace,
            params.restore_datetime,
            params.timezone,
            max_wait_minutes=params.max_wait_minutes,
            concurrency_limit=params.throttle_limit,
            dry_run=ctx.dry_run,
        )
        ctx.outputs[self.id] = batch
        error = batch.to_error()
        if error is not None:
            raise error
        return batch.summary()


class StopEnvironmentHandler:
    id = "stop-environment"
    display_name = "Stop Environment"

    async def execute(self, ctx: StepContext) -> str:
        await ctx.environment_control().stop(ctx.destination_env)
        return f"Stopped {ctx.destination_env}"


class StartEnvironmentHandler:
    id = "start-environment"
    display_name = "Start Environment"

    async def execute(self, ctx: StepContext) -> str:
        await ctx.environment_control().start(ctx.destination_env)
        return f"Started {ctx.destination_env}"


class AdjustResourcesHandler:
    id = "adjust-resources"
    display_name = "Adjust Resources"

    async def execute(self, ctx: StepContext) -> str:
        alias = ctx.params.instance_alias
        if not alias:
            logger.warning("instance_alias_missing", environment=str(ctx.destination_env))
            return "InstanceAlias not set, nothing adjusted"
        await ctx.environment_control().adjust_resources(ctx.destination_env, alias)
        return f"Adjusted {ctx.destination_env} for {alias}"


class CopyAttachmentsHandler:
    id = "copy-attachments"
    display_name = "Copy Attachments"

    async def execute(self, ctx: StepContext) -> str:
        count = await ctx.data_copier().copy_attachments(
            ctx.source_env,
            ctx.destination_env,
            use_sas_tokens=ctx.params.use_sas_tokens,
        )
        return f"{count} container(s) copied to {ctx.destination_env}"


class CopyDatabaseHandler:
    id = "copy-database"
    display_name = "Copy Database"

    async def execute(self, ctx: StepContext) -> str:
        count = await ctx.data_copier().copy_databases(ctx.source_env, ctx.destination_env)
        return f"{count} database(s) copied to {ctx.destination_env}"


class CleanupRestoredHandler:
    """Deletes the derived copies left behind by the restore step."""

    id = "cleanup-restored"
    display_name = "Cleanup Restored Databases"

    async def execute(self, ctx: StepContext) -> str:
        settings = ctx.settings
        report = await discover_targets(
            ctx.collaborators.directory,
            ctx.params.source,
            ctx.params.source_namespace,
            name_template=settings.database_name_template,
            excluded_patterns=settings.excluded_name_patterns,
            suffix=settings.restored_suffix,
        )
        control_plane = ctx.control_plane()
        deleted = 0
        for target in report.targets:
            status = await control_plane.get_status(target.derived)
            if status == DatabaseStatus.NOT_FOUND:
                continue
            await control_plane.delete(target.derived)
            logger.info("restored_copy_deleted", name=target.derived_name, dry_run=ctx.dry_run)
            deleted += 1
        return f"{deleted} restored database(s) deleted"


class RemovePermissionsHandler:
    id = "remove-permissions"
    display_name = "Remove Permissions"

    async def execute(self, ctx: StepContext) -> str:
        if ctx.collaborators.permissions is None:
            logger.warning("permission_grant_not_configured")
            return "Permission endpoint not configured, nothing removed"

        granter = ctx.permissions()
        removed = 0
        for environment in _permission_environments(ctx):
            removed += await granter.revoke(environment, ctx.settings.service_account)
        return f"{removed} permission(s) removed"


def register_default_handlers(registry: StepRegistry) -> StepRegistry:
    for handler in (
        GrantPermissionsHandler(),
        ConnectHandler(),
        RestorePointInTimeHandler(),
        StopEnvironmentHandler(),
        CopyAttachmentsHandler(),
        CopyDatabaseHandler(),
        AdjustResourcesHandler(),
        StartEnvironmentHandler(),
        CleanupRestoredHandler(),
        RemovePermissionsHandler(),
    ):
        registry.register(handler)
    return registry
