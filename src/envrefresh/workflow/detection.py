"""Auto-detection of parameters the caller did not supply."""

from __future__ import annotations

import os
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping

import structlog

from envrefresh.config import Settings, get_settings
from envrefresh.directory import ResourceDirectory
from envrefresh.restore.polling import utcnow
from envrefresh.workflow.params import (
    ParameterInput,
    RefreshParameters,
    builtin_defaults,
    check_prerequisites,
    merge_parameters,
)

logger = structlog.get_logger()

DETECTABLE_FIELDS = ("source", "cloud", "instance_alias")
PRIMARY_FILTER = {"Type": "Primary"}
SERVER_TYPE = "Microsoft.Sql/servers"


class ParameterDetector:
    """Looks up missing parameters in process variables and the resource directory.

    Only the requested fields are looked up; the directory is queried at
    most once per detector.
    """

    def __init__(
        self,
        directory: ResourceDirectory,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._directory = directory
        self._environ = os.environ if environ is None else environ
        self._primary_loaded = False
        self._primary: dict[str, str] = {}

    async def detect(self, fields: Iterable[str]) -> dict[str, Any]:
        wanted = {f for f in fields if f in DETECTABLE_FIELDS}
        detected: dict[str, Any] = {}
        if not wanted:
            return detected

        if "instance_alias" in wanted and self._environ.get("INSTANCE_ALIAS"):
            detected["instance_alias"] = self._environ["INSTANCE_ALIAS"]
        if "source" in wanted and self._environ.get("ENVIRONMENT"):
            detected["source"] = self._environ["ENVIRONMENT"]

        if ("source" in wanted and "source" not in detected) or "cloud" in wanted:
            primary = await self._load_primary()
            if "source" in wanted and "source" not in detected and primary.get("environment"):
                detected["source"] = primary["environment"]
            if "cloud" in wanted and primary.get("cloud"):
                detected["cloud"] = primary["cloud"]

        logger.info("parameters_detected", requested=sorted(wanted), detected=sorted(detected))
        return detected

    async def _load_primary(self) -> dict[str, str]:
        if self._primary_loaded:
            return self._primary
        self._primary_loaded = True
        records = await self._directory.find(PRIMARY_FILTER)
        servers = [r for r in records if (r.attribute("type") or "").lower() == SERVER_TYPE.lower()]
        if not servers:
            logger.warning("primary_server_not_found")
            return self._primary
        record = servers[0]
        for key in ("Environment", "Cloud"):
            value = record.attribute(key)
            if value:
                self._primary[key.lower()] = value
        return self._primary


class ParameterResolver:
    """Produces the resolved parameter set for a run."""

    def __init__(
        self,
        detector: ParameterDetector,
        settings: Settings | None = None,
        now_fn: Callable[[], datetime] = utcnow,
    ) -> None:
        self._detector = detector
        self._settings = settings or get_settings()
        self._now_fn = now_fn

    async def resolve(self, explicit: ParameterInput) -> RefreshParameters:
        missing = [name for name in DETECTABLE_FIELDS if getattr(explicit, name) is None]
        detected = await self._detector.detect(missing) if missing else {}
        params = merge_parameters(explicit, detected, builtin_defaults(self._settings, self._now_fn))
        check_prerequisites(params)
        logger.info(
            "parameters_resolved",
            source=f"{params.source}/{params.source_namespace}",
            destination=f"{params.destination}/{params.destination_namespace}",
            restore_datetime=params.restore_datetime,
            timezone=params.timezone,
            dry_run=params.dry_run,
        )
        return params
