"""
Refresh parameters and their merge rules.

Priority for every field: explicit user value > auto-detected value >
built-in default. Built-in defaults may be callables that derive a value
from fields merged before them (for example ``destination`` defaults to
``source``), so field order in ``RefreshParameters`` matters.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from envrefresh.config import Settings
from envrefresh.core.errors import ConfigurationError, PrerequisiteError
from envrefresh.restore.timezone import default_restore_datetime


class ParameterInput(BaseModel):
    """Values supplied by the caller; None means "not supplied"."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    source: Optional[str] = Field(None, alias="Source", description="Environment to copy data from")
    destination: Optional[str] = Field(None, alias="Destination", description="Environment to copy data to")
    source_namespace: Optional[str] = Field(None, alias="SourceNamespace")
    destination_namespace: Optional[str] = Field(None, alias="DestinationNamespace")
    timezone: Optional[str] = Field(None, alias="Timezone", description="IANA zone or UTC")
    restore_datetime: Optional[str] = Field(
        None, alias="RestoreDateTime", description="yyyy-MM-dd HH:mm:ss in Timezone"
    )
    cloud: Optional[str] = Field(None, alias="Cloud")
    domain: Optional[str] = Field(None, alias="Domain")
    instance_alias: Optional[str] = Field(None, alias="InstanceAlias")
    max_wait_minutes: Optional[int] = Field(None, alias="MaxWaitMinutes", ge=0)
    throttle_limit: Optional[int] = Field(None, alias="ThrottleLimit", ge=1)
    dry_run: Optional[bool] = Field(None, alias="DryRun")
    force: Optional[bool] = Field(None, alias="Force")
    auto_approve: Optional[bool] = Field(None, alias="AutoApprove")
    use_sas_tokens: Optional[bool] = Field(None, alias="UseSasTokens")

    def supplied(self) -> dict[str, Any]:
        return {name: value for name, value in self if value is not None}


class RefreshParameters(BaseModel):
    """Fully resolved parameters handed to every step."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    source: str = Field(..., alias="Source")
    destination: str = Field(..., alias="Destination")
    source_namespace: str = Field(..., alias="SourceNamespace")
    destination_namespace: str = Field(..., alias="DestinationNamespace")
    timezone: str = Field(..., alias="Timezone")
    restore_datetime: str = Field(..., alias="RestoreDateTime")
    cloud: str = Field(..., alias="Cloud")
    domain: str = Field(..., alias="Domain")
    instance_alias: Optional[str] = Field(None, alias="InstanceAlias")
    max_wait_minutes: int = Field(..., alias="MaxWaitMinutes", ge=0)
    throttle_limit: int = Field(..., alias="ThrottleLimit", ge=1)
    dry_run: bool = Field(..., alias="DryRun")
    force: bool = Field(..., alias="Force")
    auto_approve: bool = Field(..., alias="AutoApprove")
    use_sas_tokens: bool = Field(..., alias="UseSasTokens")


Default = Union[Any, Callable[[dict[str, Any]], Any]]


def domain_for_cloud(cloud: str) -> str:
    return "us" if cloud.lower() == "azureusgovernment" else "cloud"


def builtin_defaults(settings: Settings, now_fn: Callable[[], datetime]) -> dict[str, Default]:
    return {
        "destination": lambda v: v["source"],
        "source_namespace": settings.default_source_namespace,
        "destination_namespace": settings.default_destination_namespace,
        "timezone": settings.default_timezone,
        "restore_datetime": lambda v: default_restore_datetime(
            now_fn(), settings.default_restore_offset_minutes
        ),
        "cloud": settings.default_cloud,
        "domain": lambda v: domain_for_cloud(v["cloud"]),
        "max_wait_minutes": settings.default_max_wait_minutes,
        "throttle_limit": settings.default_throttle_limit,
        "dry_run": True,
        "force": False,
        "auto_approve": False,
        "use_sas_tokens": False,
    }


def merge_parameters(
    explicit: ParameterInput,
    detected: Mapping[str, Any],
    defaults: Mapping[str, Default],
) -> RefreshParameters:
    """Merge explicit > detected > default, field by field in declaration order."""
    values: dict[str, Any] = {}
    for name in RefreshParameters.model_fields:
        value = getattr(explicit, name, None)
        if value is None:
            value = detected.get(name)
        if value is None:
            default = defaults.get(name)
            value = default(values) if callable(default) else default
        values[name] = value

    if values.get("source") is None:
        raise PrerequisiteError(
            "Source environment was not supplied and could not be detected",
            {"hint": "pass Source=<environment> or set ENVIRONMENT"},
        )
    try:
        return RefreshParameters.model_validate(values)
    except pydantic.ValidationError as exc:
        raise ConfigurationError(f"Invalid parameters: {exc}") from exc


def check_prerequisites(params: RefreshParameters) -> None:
    """Refuse to copy an environment onto itself unless forced."""
    same_env = params.source.lower() == params.destination.lower()
    same_ns = params.source_namespace.lower() == params.destination_namespace.lower()
    if same_env and same_ns and not params.force:
        raise PrerequisiteError(
            "Source and destination are the same environment and namespace",
            {"environment": params.source, "namespace": params.source_namespace, "hint": "Force=true"},
        )
