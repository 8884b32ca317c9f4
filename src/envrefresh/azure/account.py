"""Signed-in ``az`` session."""

from __future__ import annotations

import structlog

from envrefresh.azure.runner import AzCli
from envrefresh.core.errors import AuthenticationError

logger = structlog.get_logger()


class AzAccountSession:
    def __init__(self, az: AzCli) -> None:
        self._az = az

    async def verify(self, cloud: str) -> str:
        """Select ``cloud`` and return the signed-in account name."""
        await self._az.run("cloud", "set", "--name", cloud)
        account = await self._az.run("account", "show")
        user = (account or {}).get("user") or {}
        name = user.get("name")
        if not name:
            raise AuthenticationError("No signed-in Azure account", {"cloud": cloud})
        logger.info("azure_connected", cloud=cloud, account=name, subscription=(account or {}).get("name"))
        return str(name)
