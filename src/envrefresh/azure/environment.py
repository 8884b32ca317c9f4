"""Environment control over AKS and resource tags."""

from __future__ import annotations

import structlog

from envrefresh.azure.directory import AzResourceDirectory, find_primary
from envrefresh.azure.runner import AzCli
from envrefresh.controlplane import EnvironmentRef
from envrefresh.core.errors import PrerequisiteError
from envrefresh.directory import ResourceRecord

logger = structlog.get_logger()

CLUSTER_TYPE = "Microsoft.ContainerService/managedClusters"


class AksEnvironmentControl:
    def __init__(self, az: AzCli, directory: AzResourceDirectory) -> None:
        self._az = az
        self._directory = directory

    async def _cluster(self, environment: EnvironmentRef) -> ResourceRecord:
        cluster = await find_primary(self._directory, environment.name, CLUSTER_TYPE)
        if cluster is None:
            raise PrerequisiteError(f"No primary AKS cluster found for {environment.name}")
        return cluster

    async def _aks(self, action: str, environment: EnvironmentRef) -> None:
        cluster = await self._cluster(environment)
        await self._az.run(
            "aks",
            action,
            "--name",
            cluster.name,
            "--resource-group",
            cluster.resource_group,
            "--subscription",
            cluster.subscription_id,
        )
        logger.info("cluster_state_changed", action=action, cluster=cluster.name)

    async def stop(self, environment: EnvironmentRef) -> None:
        await self._aks("stop", environment)

    async def start(self, environment: EnvironmentRef) -> None:
        await self._aks("start", environment)

    async def adjust_resources(self, environment: EnvironmentRef, instance_alias: str) -> None:
        """Point the environment's databases at ``instance_alias`` via their tags."""
        records = await self._directory.find({"Environment": environment.name, "Namespace": environment.namespace})
        databases = [r for r in records if r.attribute("server")]
        for record in databases:
            await self._az.run(
                "resource",
                "tag",
                "--ids",
                record.attribute("id") or "",
                "--tags",
                f"InstanceAlias={instance_alias}",
                "--is-incremental",
            )
        logger.info("resources_adjusted", environment=str(environment), databases=len(databases))
