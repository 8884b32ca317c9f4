"""Parsing of ``Key=Value`` invocation tokens."""

from __future__ import annotations

from typing import Any, Iterable, get_args

import pydantic

from envrefresh.core.errors import ConfigurationError
from envrefresh.workflow.params import ParameterInput

TRUE_VALUES = {"true", "1", "yes", "y", "on"}
FALSE_VALUES = {"false", "0", "no", "n", "off"}
SKIP_KEY = "skipsteps"


def _field_index() -> dict[str, tuple[str, Any]]:
    index: dict[str, tuple[str, Any]] = {}
    for name, info in ParameterInput.model_fields.items():
        index[(info.alias or name).lower()] = (name, info.annotation)
        index[name.lower()] = (name, info.annotation)
    return index


def _coerce(key: str, raw: str, annotation: Any) -> Any:
    kinds = get_args(annotation) or (annotation,)
    if bool in kinds:
        lowered = raw.strip().lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES:
            return False
        raise ConfigurationError(f"{key} expects a boolean", {"value": raw})
    if int in kinds:
        try:
            return int(raw.strip())
        except ValueError as exc:
            raise ConfigurationError(f"{key} expects an integer", {"value": raw}) from exc
    return raw.strip() or None


def parse_invocation(tokens: Iterable[str]) -> tuple[ParameterInput, frozenset[str]]:
    """Map ``Key=Value`` tokens onto parameters plus the set of steps to skip.

    Keys are matched case-insensitively against parameter names.
    ``SkipSteps=a,b`` accumulates across repeated tokens.
    """
    index = _field_index()
    values: dict[str, Any] = {}
    skip: set[str] = set()

    for token in tokens:
        key, sep, raw = token.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigurationError(f"Expected Key=Value, got '{token}'")
        if key.lower() == SKIP_KEY:
            skip.update(s.strip().lower() for s in raw.split(",") if s.strip())
            continue
        if key.lower() not in index:
            raise ConfigurationError(f"Unknown parameter '{key}'")
        name, annotation = index[key.lower()]
        values[name] = _coerce(key, raw, annotation)

    try:
        params = ParameterInput.model_validate(values)
    except pydantic.ValidationError as exc:
        raise ConfigurationError(f"Invalid parameters: {exc}") from exc
    return params, frozenset(skip)
