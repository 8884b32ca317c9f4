"""Contracts for the external control-planes envrefresh drives."""

from envrefresh.controlplane.base import (
    DatabaseControlPlane,
    DatabaseRef,
    DatabaseStatus,
    ServerRef,
)
from envrefresh.controlplane.environment import (
    AccountSession,
    DataCopier,
    EnvironmentControl,
    EnvironmentRef,
    PermissionGranter,
)

__all__ = [
    "AccountSession",
    "DataCopier",
    "DatabaseControlPlane",
    "DatabaseRef",
    "DatabaseStatus",
    "EnvironmentControl",
    "EnvironmentRef",
    "PermissionGranter",
    "ServerRef",
]
