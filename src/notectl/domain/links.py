"""Link detection and target extraction for frontmatter values.

Pure functions, no infrastructure dependencies. Link fields hold
``[[Target]]``, ``"[[Target]]"`` (quoted wikilink), or
``[Target](Target.md)`` values; ownership validation needs the bare
target name of each.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

# [[Target]], [[Target|Display]], [[Target#Heading]]
_WIKILINK_PATTERN = re.compile(r"\[\[([^\[\]]+)\]\]")
_MARKDOWN_PATTERN = re.compile(r"\[[^\]]+\]\(([^)]+)\)")
_WIKILINK_FULL = re.compile(r"^\[\[.+\]\]$")
_MARKDOWN_FULL = re.compile(r"^\[.+\]\((.+)\.md\)$")


@dataclass(frozen=True)
class WikiLink:
    """A wikilink extracted from text."""

    raw: str  # target portion, without heading or alias
    display: str | None = None


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def is_wikilink(value: str) -> bool:
    return bool(_WIKILINK_FULL.match(value))


def is_quoted_wikilink(value: str) -> bool:
    return value.startswith('"') and value.endswith('"') and is_wikilink(_unquote(value))


def is_markdown_link(value: str) -> bool:
    return bool(_MARKDOWN_FULL.match(_unquote(value)))


def _split_target(inner: str) -> tuple[str, str | None]:
    target, _, display = inner.partition("|")
    target = target.split("#", 1)[0].strip()
    return target, (display.strip() or None)


def extract_wikilinks(text: str) -> list[WikiLink]:
    """Extract all ``[[wikilinks]]`` from *text*."""
    results: list[WikiLink] = []
    for match in _WIKILINK_PATTERN.finditer(text):
        target, display = _split_target(match.group(1))
        if target:
            results.append(WikiLink(raw=target, display=display))
    return results


def extract_link_target(value: str) -> str | None:
    """Bare target of a single link value, or None if it is not a link."""
    if not value:
        return None
    inner = _unquote(value.strip())
    if is_wikilink(inner):
        target, _display = _split_target(inner[2:-2])
        return target or None
    match = _MARKDOWN_FULL.match(inner)
    if match:
        return match.group(1)
    return None


def extract_link_targets(value: Any) -> list[str]:
    """All link targets in a string or list value, deduplicated in order.

    Embedded links inside longer strings are found as well.
    """
    items = value if isinstance(value, list) else [value]
    targets: dict[str, None] = {}
    for item in items:
        if not isinstance(item, str):
            continue
        single = extract_link_target(item)
        if single:
            targets.setdefault(single, None)
            continue
        for link in extract_wikilinks(item):
            targets.setdefault(link.raw, None)
        for match in _MARKDOWN_PATTERN.finditer(item):
            target = match.group(1)
            target = target[:-3] if target.endswith(".md") else target
            targets.setdefault(target, None)
    return list(targets)


def to_wikilink(value: str) -> str:
    """Render *value* (a name or any link form) as ``[[name]]``."""
    if is_wikilink(value) or is_quoted_wikilink(value):
        return value
    return f"[[{extract_link_target(value) or value}]]"
