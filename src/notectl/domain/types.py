"""Field kinds, link formats, and storage layouts used by the schema."""

from __future__ import annotations

from enum import StrEnum


class InputKind(StrEnum):
    """How a field's value is collected and typed."""

    SELECT = "select"
    TEXT = "text"
    LIST = "list"
    DATE = "date"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STATIC = "static"


class LinkFormat(StrEnum):
    """Expected rendering of a field that references other records."""

    PLAIN = "plain"
    WIKILINK = "wikilink"
    QUOTED_WIKILINK = "quoted-wikilink"


class DirMode(StrEnum):
    """Storage layout of a type's records under its output directory."""

    POOLED = "pooled"
    INSTANCE_GROUPED = "instance-grouped"


LINK_FORMATS = frozenset({LinkFormat.WIKILINK, LinkFormat.QUOTED_WIKILINK})
