"""Resource directory backed by ``az resource list``."""

from __future__ import annotations

from typing import Any, Mapping

import structlog

from envrefresh.azure.runner import AzCli
from envrefresh.directory import ResourceRecord

logger = structlog.get_logger()

DATABASE_TYPE = "microsoft.sql/servers/databases"


def _subscription_of(resource_id: str) -> str:
    parts = resource_id.split("/")
    for index, part in enumerate(parts[:-1]):
        if part.lower() == "subscriptions":
            return parts[index + 1]
    return ""


def _tag_matches(tags: Mapping[str, str], key: str, value: str) -> bool:
    for name, actual in tags.items():
        if name.lower() == key.lower():
            return str(actual).lower() == value.lower()
    return False


def to_record(resource: Mapping[str, Any]) -> ResourceRecord:
    """Convert one ``az resource list`` entry into a directory record.

    Databases are listed as ``server/database``; the server part becomes the
    ``server`` attribute so discovery can address the database.
    """
    attributes: dict[str, str] = {str(k): str(v) for k, v in (resource.get("tags") or {}).items()}
    resource_type = str(resource.get("type", ""))
    name = str(resource.get("name", ""))
    attributes["type"] = resource_type
    attributes["id"] = str(resource.get("id", ""))
    if resource_type.lower() == DATABASE_TYPE and "/" in name:
        server, name = name.split("/", 1)
        attributes["server"] = server
    return ResourceRecord(
        name=name,
        resource_group=str(resource.get("resourceGroup", "")),
        subscription_id=_subscription_of(attributes["id"]),
        attributes=attributes,
    )


class AzResourceDirectory:
    """Tag-filtered resource lookup across the signed-in subscriptions."""

    def __init__(self, az: AzCli) -> None:
        self._az = az

    async def find(self, tag_filters: Mapping[str, str]) -> list[ResourceRecord]:
        filters = list(tag_filters.items())
        args = ["resource", "list"]
        # az accepts a single --tag filter; the rest are applied here.
        if filters:
            key, value = filters[0]
            args += ["--tag", f"{key}={value}"]
        resources = await self._az.run(*args) or []
        records = [
            to_record(resource)
            for resource in resources
            if all(_tag_matches(resource.get("tags") or {}, k, v) for k, v in filters[1:])
        ]
        logger.debug("directory_query", filters=dict(tag_filters), matched=len(records))
        return records


async def find_primary(
    directory: AzResourceDirectory,
    environment: str,
    resource_type: str,
) -> ResourceRecord | None:
    """The ``Type=Primary`` resource of a given ARM type for an environment."""
    records = await directory.find({"Environment": environment, "Type": "Primary"})
    for record in records:
        if (record.attribute("type") or "").lower() == resource_type.lower():
            return record
    return None
