"""Restore target discovery from the resource directory."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

import structlog

from envrefresh.controlplane import DatabaseRef, ServerRef
from envrefresh.directory import (
    ResourceDirectory,
    ResourceRecord,
    derived_name,
    is_excluded,
    matches_convention,
)
from envrefresh.restore.models import RestoreTarget

logger = structlog.get_logger()


@dataclass
class DiscoveryReport:
    targets: list[RestoreTarget] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def environment_filters(environment: str, namespace: str | None = None) -> dict[str, str]:
    filters = {"Environment": environment}
    if namespace:
        filters["Namespace"] = namespace
    return filters


def _server_of(record: ResourceRecord) -> ServerRef | None:
    server = record.attribute("server")
    if not server:
        return None
    return ServerRef(
        subscription_id=record.subscription_id,
        resource_group=record.resource_group,
        server=server,
    )


async def discover_targets(
    directory: ResourceDirectory,
    environment: str,
    namespace: str | None,
    *,
    name_template: str,
    excluded_patterns: Iterable[str],
    suffix: str = "-restored",
) -> DiscoveryReport:
    """Find the databases of an environment that follow the naming convention.

    Administrative, system and already-derived databases are excluded by
    name; anything that does not match the template is skipped with a
    diagnostic rather than treated as an error.
    """
    patterns = list(excluded_patterns)
    records = await directory.find(environment_filters(environment, namespace))
    report = DiscoveryReport()

    for record in records:
        server = _server_of(record)
        if server is None:
            continue
        if is_excluded(record.name, patterns):
            logger.debug("target_excluded", name=record.name)
            continue
        if not matches_convention(name_template, record):
            logger.info(
                "target_skipped",
                name=record.name,
                reason="name does not match convention",
                template=name_template,
            )
            report.skipped.append(record.name)
            continue
        report.targets.append(
            RestoreTarget(
                base_name=record.name,
                derived_name=derived_name(record.name, suffix),
                service_tag=record.attribute("Service"),
                source=DatabaseRef(server=server, name=record.name),
            )
        )

    logger.info(
        "targets_discovered",
        environment=environment,
        namespace=namespace,
        targets=[t.base_name for t in report.targets],
        skipped=len(report.skipped),
    )
    return report
