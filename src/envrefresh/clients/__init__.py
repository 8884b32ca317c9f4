"""HTTP clients for external services."""

from envrefresh.clients.base import BaseHTTPClient, RetryableHTTPError
from envrefresh.clients.permissions import PermissionClient

__all__ = ["BaseHTTPClient", "PermissionClient", "RetryableHTTPError"]
