"""Naming conventions used to pick restore candidates out of a directory listing."""

from __future__ import annotations

import string
from typing import Iterable

from envrefresh.directory.base import ResourceRecord


def is_excluded(name: str, patterns: Iterable[str]) -> bool:
    """Whether a name contains an administrative/system/derived marker."""
    return any(pattern in name for pattern in patterns)


def template_fields(template: str) -> list[str]:
    """Placeholder names used by a naming template."""
    return [fname for _, fname, _, _ in string.Formatter().parse(template) if fname]


def expected_name(template: str, record: ResourceRecord) -> str | None:
    """Render the conventional name for a record, or None if an attribute is missing."""
    values: dict[str, str] = {}
    for fname in template_fields(template):
        value = record.attribute(fname)
        if not value:
            return None
        values[fname] = value
    return template.format(**values)


def matches_convention(template: str, record: ResourceRecord) -> bool:
    """Whether a record's name equals the name its attributes predict."""
    expected = expected_name(template, record)
    return expected is not None and expected.lower() == record.name.lower()


def derived_name(base_name: str, suffix: str = "-restored") -> str:
    return f"{base_name}{suffix}"
