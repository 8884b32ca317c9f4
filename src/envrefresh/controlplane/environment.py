"""Contracts for the non-database collaborators the refresh steps drive."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class EnvironmentRef:
    """A logical deployment slice; namespace distinguishes tenants."""

    name: str
    namespace: str

    def __str__(self) -> str:
        return f"{self.name}/{self.namespace}"


class EnvironmentControl(Protocol):
    """Pause, resume and reconfigure a deployment."""

    async def stop(self, environment: EnvironmentRef) -> None:
        ...

    async def start(self, environment: EnvironmentRef) -> None:
        ...

    async def adjust_resources(self, environment: EnvironmentRef, instance_alias: str) -> None:
        ...


class DataCopier(Protocol):
    """Copies blob storage and restored databases between deployments."""

    async def copy_attachments(
        self,
        source: EnvironmentRef,
        destination: EnvironmentRef,
        *,
        use_sas_tokens: bool = False,
    ) -> int:
        ...

    async def copy_databases(self, source: EnvironmentRef, destination: EnvironmentRef) -> int:
        ...


class AccountSession(Protocol):
    """An authenticated control-plane session (credential acquisition is external)."""

    async def verify(self, cloud: str) -> str:
        """Return the signed-in account name or raise AuthenticationError."""
        ...


class PermissionGranter(Protocol):
    """Grants/removes the refresh service account's access to an environment."""

    async def grant(self, environment: str, account: str) -> int:
        ...

    async def revoke(self, environment: str, account: str) -> int:
        ...
