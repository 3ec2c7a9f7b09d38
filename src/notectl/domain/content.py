"""Frontmatter parsing and rendering.

Records are markdown files that open with a ``---``-delimited YAML
block. Parsing uses ruamel.yaml in round-trip mode so quote styles and
scalar types survive a rewrite. These helpers are pure: reading and
writing files is the filesystem layer's job.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from io import StringIO
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from notectl.domain.errors import FrontmatterError

_FRONTMATTER_DELIMITER = "---"


def _new_yaml() -> YAML:
    """Create a fresh round-trip YAML parser.

    ruamel's YAML object is stateful; a failed dump can leave a shared
    instance unusable, so each call gets its own.
    """
    y = YAML()
    y.preserve_quotes = True
    y.default_flow_style = False
    y.width = 4096
    return y


@dataclass(frozen=True)
class ParsedRecord:
    """Frontmatter mapping and body text of one record."""

    frontmatter: dict[str, Any]
    body: str
    has_frontmatter: bool = True


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Split markdown *content* into ``(frontmatter, body)``.

    Handles both ``\\n`` and ``\\r\\n`` line endings. Content without an
    opening and closing ``---`` yields ``({}, content)``.

    Raises:
        FrontmatterError: If the YAML block is malformed or not a mapping.
    """
    parsed = parse_record(content)
    return parsed.frontmatter, parsed.body


def parse_record(content: str) -> ParsedRecord:
    """Like :func:`parse_frontmatter` but also reports whether a block existed."""
    normalized = content.replace("\r\n", "\n")
    lines = normalized.split("\n")
    if not lines or lines[0].strip() != _FRONTMATTER_DELIMITER:
        return ParsedRecord({}, content, has_frontmatter=False)

    end_idx: int | None = None
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == _FRONTMATTER_DELIMITER:
            end_idx = i
            break
    if end_idx is None:
        return ParsedRecord({}, content, has_frontmatter=False)

    yaml_block = "\n".join(lines[1:end_idx])
    # Body is kept verbatim so a rewrite only touches the YAML block.
    body = "\n".join(lines[end_idx + 1 :])

    try:
        loaded = _new_yaml().load(yaml_block)
    except YAMLError as exc:
        msg = f"Invalid YAML frontmatter: {exc}"
        raise FrontmatterError(msg) from exc
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, Mapping):
        msg = f"Frontmatter must be a mapping, got {type(loaded).__name__}"
        raise FrontmatterError(msg)
    return ParsedRecord(dict(loaded), body)


def order_frontmatter(fm: Mapping[str, Any], order: Sequence[str] | None = None) -> dict[str, Any]:
    """Return *fm* with the keys named in *order* first.

    Remaining keys keep their existing relative order. Without *order*
    the mapping is returned unchanged (as a plain dict).
    """
    if not order:
        return dict(fm)
    ordered: dict[str, Any] = {key: fm[key] for key in order if key in fm}
    for key, value in fm.items():
        if key not in ordered:
            ordered[key] = value
    return ordered


def render_frontmatter(
    frontmatter: Mapping[str, Any],
    body: str,
    *,
    order: Sequence[str] | None = None,
) -> str:
    """Render a frontmatter mapping and body text into markdown."""
    ordered = order_frontmatter(frontmatter, order)
    parts = [_FRONTMATTER_DELIMITER, "\n"]
    if ordered:
        buf = StringIO()
        _new_yaml().dump(ordered, buf)
        parts.append(buf.getvalue())
    parts.extend([_FRONTMATTER_DELIMITER, "\n"])
    if body:
        parts.append(body)
    return "".join(parts)
