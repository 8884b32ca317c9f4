from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol


class DatabaseStatus(str, Enum):
    """Status values reported by the database control-plane."""

    ONLINE = "Online"
    RESTORING = "Restoring"
    CREATING = "Creating"
    COPYING = "Copying"
    OFFLINE = "Offline"
    FAILED = "Failed"
    NOT_FOUND = "NotFound"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: str | None) -> "DatabaseStatus":
        if not value:
            return cls.NOT_FOUND
        for member in cls:
            if member.value.lower() == value.strip().lower():
                return member
        return cls.UNKNOWN

    @property
    def is_terminal_failure(self) -> bool:
        return self in (DatabaseStatus.FAILED, DatabaseStatus.OFFLINE)

    @property
    def is_inconclusive(self) -> bool:
        """Statuses that warrant the secondary state query before retrying."""
        return self in (DatabaseStatus.NOT_FOUND, DatabaseStatus.UNKNOWN)


@dataclass(frozen=True)
class ServerRef:
    subscription_id: str
    resource_group: str
    server: str


@dataclass(frozen=True)
class DatabaseRef:
    server: ServerRef
    name: str


class DatabaseControlPlane(Protocol):
    """Contract for the database control-plane.

    ``restore`` and ``delete`` are the only mutating operations.
    """

    async def list_databases(self, server: ServerRef) -> list[str]:
        ...

    async def earliest_restore_point(self, database: DatabaseRef) -> datetime:
        ...

    async def restore(self, source: DatabaseRef, dest_name: str, point_in_time: datetime) -> None:
        ...

    async def get_status(self, database: DatabaseRef) -> DatabaseStatus:
        ...

    async def get_state(self, database: DatabaseRef) -> DatabaseStatus:
        ...

    async def delete(self, database: DatabaseRef) -> None:
        ...
