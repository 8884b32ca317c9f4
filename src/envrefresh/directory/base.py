from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Protocol


@dataclass(frozen=True)
class ResourceRecord:
    """A resource returned by a tag-based directory query."""

    name: str
    resource_group: str
    subscription_id: str
    attributes: Mapping[str, str] = field(default_factory=dict)

    def attribute(self, key: str, default: str | None = None) -> str | None:
        """Case-insensitive attribute lookup (tag keys are not case-stable)."""
        if key in self.attributes:
            return self.attributes[key]
        lowered = key.lower()
        for name, value in self.attributes.items():
            if name.lower() == lowered:
                return value
        return default


class ResourceDirectory(Protocol):
    """Resolves environment/namespace tags to concrete resources."""

    async def find(self, tag_filters: Mapping[str, str]) -> list[ResourceRecord]:
        ...
