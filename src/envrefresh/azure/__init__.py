"""Azure CLI backed collaborators."""

from envrefresh.azure.account import AzAccountSession
from envrefresh.azure.controlplane import AzSqlControlPlane
from envrefresh.azure.copy import AzDataCopier
from envrefresh.azure.directory import AzResourceDirectory
from envrefresh.azure.environment import AksEnvironmentControl
from envrefresh.azure.runner import AzCli, AzNotFoundError

__all__ = [
    "AksEnvironmentControl",
    "AzAccountSession",
    "AzCli",
    "AzDataCopier",
    "AzNotFoundError",
    "AzResourceDirectory",
    "AzSqlControlPlane",
]
