"""Shared service-layer helper functions."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from typing import Any


def jsonable(value: Any) -> Any:
    """Convert frontmatter values (ruamel scalars, dates) to plain JSON types."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        return float(value)
    if isinstance(value, str):
        return str(value)
    if isinstance(value, Mapping):
        return {str(k): jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [jsonable(v) for v in value]
    return str(value)


def pick_fields(attrs: Mapping[str, Any], fields: list[str] | None) -> dict[str, Any]:
    """Project *attrs* onto *fields* (all attributes when *fields* is empty)."""
    if not fields:
        return {key: jsonable(value) for key, value in attrs.items()}
    return {name: jsonable(attrs.get(name)) for name in fields}
