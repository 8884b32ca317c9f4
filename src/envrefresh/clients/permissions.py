from __future__ import annotations

from typing import Any

import structlog

from envrefresh.clients.base import BaseHTTPClient
from envrefresh.core.errors import CollaboratorError

logger = structlog.get_logger()


class PermissionClient(BaseHTTPClient):
    """Client for the function that manages the refresh service account's roles."""

    def __init__(
        self,
        function_url: str,
        function_key: str | None = None,
        *,
        timeout: float = 60.0,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
    ) -> None:
        super().__init__(
            function_url,
            timeout=timeout,
            max_retries=max_retries,
            backoff_factor=backoff_factor,
        )
        self._function_key = function_key

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._function_key:
            headers["x-functions-key"] = self._function_key
        return headers

    async def grant(self, environment: str, account: str) -> int:
        """Grant ``account`` its roles on ``environment``; returns how many were added."""
        body = await self._invoke("Grant", environment, account)
        added = _count(body, "addedCount")
        logger.info("permissions_granted", environment=environment, account=account, added=added)
        return added

    async def revoke(self, environment: str, account: str) -> int:
        body = await self._invoke("Remove", environment, account)
        removed = _count(body, "removedCount")
        logger.info("permissions_removed", environment=environment, account=account, removed=removed)
        return removed

    async def _invoke(self, action: str, environment: str, account: str) -> dict[str, Any]:
        return await self.post(
            "",
            json={"action": action, "environment": environment, "serviceAccount": account},
        )


def _count(body: dict[str, Any], key: str) -> int:
    value = body.get(key, 0)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise CollaboratorError(f"Unexpected {key} in permission response", {key: value}) from exc
