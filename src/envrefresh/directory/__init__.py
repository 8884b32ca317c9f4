"""Resource directory contract and naming conventions."""

from envrefresh.directory.base import ResourceDirectory, ResourceRecord
from envrefresh.directory.naming import (
    derived_name,
    expected_name,
    is_excluded,
    matches_convention,
)

__all__ = [
    "ResourceDirectory",
    "ResourceRecord",
    "derived_name",
    "expected_name",
    "is_excluded",
    "matches_convention",
]
