"""Targeting: turn a selector set into the records an operation acts on.

Two gates protect mutating commands:

- **Gate 1 (selection)**: at least one explicit selector (type, path,
  where, id, body) or an explicit ``--all`` is required; otherwise
  nothing is selected and the caller gets a targeting error.
- **Gate 2 (execution)**: mutating services preview by default and only
  write with ``execute=True`` (see :mod:`notectl.services.bulk`).

Candidates are narrowed in a fixed order: type -> path -> id -> body ->
where. Where-expressions are parsed and checked against the schema
before any file is read.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Literal

import pathspec

from notectl.domain.errors import ExpressionSyntaxError, FrontmatterError
from notectl.domain.expression import Expression, build_eval_context, evaluate_all, parse
from notectl.domain.resolver import TypeResolver
from notectl.domain.schema import Schema
from notectl.domain.where import EXPRESSION_FIELD, WhereError, format_errors, validate
from notectl.infrastructure.filesystem import ManagedFile, discover_managed_files, read_record
from notectl.services import result as codes
from notectl.services.result import ServiceResult

logger = logging.getLogger(__name__)

TargetingErrorKind = Literal["targeting", "type", "where"]

NO_TARGETING_MESSAGE = (
    "No records selected. Use --type, --path, --where, --id or --body to "
    "target records, or --all to select every record."
)


@dataclass(frozen=True)
class SelectorSet:
    """Every way a command can narrow its target records."""

    type_path: str | None = None
    path_glob: str | None = None
    where: tuple[str, ...] = ()
    record_id: str | None = None
    body_query: str | None = None
    select_all: bool = False
    execute: bool = False

    @property
    def dry_run(self) -> bool:
        return not self.execute


@dataclass(frozen=True)
class TargetedRecord:
    """A selected record, already parsed."""

    file: ManagedFile
    frontmatter: dict[str, Any]
    body: str
    type_path: str | None

    @property
    def path(self) -> str:
        return self.file.relative_path


@dataclass(frozen=True)
class TargetingResult:
    files: list[TargetedRecord] = field(default_factory=list)
    error: str | None = None
    kind: TargetingErrorKind | None = None
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    where_errors: list[WhereError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


def has_any_targeting(selectors: SelectorSet) -> bool:
    """Gate 1: is there at least one explicit selector or ``--all``?"""
    return bool(
        selectors.type_path
        or selectors.path_glob
        or selectors.where
        or selectors.record_id
        or selectors.body_query
        or selectors.select_all
    )


# ---------------------------------------------------------------------------
# Path globs
# ---------------------------------------------------------------------------

_GLOB_CHARS = frozenset("*?[")


def path_matcher(pattern: str) -> Callable[[str], bool]:
    """Predicate over vault-relative paths for a ``--path`` value.

    A plain path selects that file or everything under that folder. A
    glob uses gitwildmatch rules anchored at the vault root: ``*`` and
    ``?`` stay within one segment, ``**`` spans folders and ``[...]`` is
    a character class.
    """
    if not any(ch in _GLOB_CHARS for ch in pattern):
        prefix = pattern.strip("/")
        return lambda relative: not prefix or relative == prefix or relative.startswith(prefix + "/")
    spec = pathspec.PathSpec.from_lines("gitwildmatch", ["/" + pattern.lstrip("/")])
    return spec.match_file


def matches_path_glob(relative: str, pattern: str) -> bool:
    return path_matcher(pattern)(relative)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def _within(type_path: str | None, requested: str) -> bool:
    return type_path is None or type_path == requested or type_path.startswith(requested + "/")


def _matches_id(record: ManagedFile, attrs: dict[str, Any], record_id: str) -> bool:
    value = attrs.get("id")
    if value is not None and str(value) == record_id:
        return True
    return PurePosixPath(record.relative_path).stem == record_id


def resolve_targets(
    selectors: SelectorSet,
    schema: Schema,
    vault_root: Path,
    *,
    ignored: tuple[str, ...] | list[str] = (),
    near_match_limit: int = 5,
) -> TargetingResult:
    """Resolve *selectors* to parsed records, in vault-relative path order.

    Never raises for user mistakes: a missing selection, an unknown type,
    or an invalid where-expression come back as ``error`` + ``kind``.
    """
    if not has_any_targeting(selectors):
        return TargetingResult(error=NO_TARGETING_MESSAGE, kind="targeting")

    resolver = TypeResolver(schema)
    type_path = "/".join(seg for seg in (selectors.type_path or "").split("/") if seg) or None
    if type_path and resolver.definition(type_path) is None:
        suggestions = resolver.close_type_matches(type_path, limit=near_match_limit)
        message = f"Unknown type: '{type_path}'"
        if suggestions:
            message += f". Did you mean: {', '.join(suggestions)}?"
        return TargetingResult(error=message, kind="type", suggestions=suggestions)

    parsed: list[Expression] = []
    for text in selectors.where:
        try:
            parsed.append(parse(text))
        except ExpressionSyntaxError as exc:
            error = WhereError(field=EXPRESSION_FIELD, message=str(exc), expression=text)
            return TargetingResult(error=str(exc), kind="where", where_errors=[error])
    validation = validate(selectors.where, schema, type_path)
    if not validation.ok:
        return TargetingResult(
            error=format_errors(validation.errors),
            kind="where",
            where_errors=validation.errors,
        )

    candidates = discover_managed_files(resolver, vault_root, type_path, ignored=ignored)
    if selectors.path_glob:
        matches = path_matcher(selectors.path_glob)
        candidates = [c for c in candidates if matches(c.relative_path)]

    warnings: list[str] = []
    selected: list[TargetedRecord] = []
    needle = selectors.body_query.lower() if selectors.body_query else None
    for candidate in candidates:
        try:
            record = read_record(candidate.path)
        except (FrontmatterError, OSError, UnicodeDecodeError) as exc:
            warnings.append(f"Skipped {candidate.relative_path}: {exc}")
            continue

        attrs = record.frontmatter
        record_type = resolver.resolve_type_path_from_frontmatter(attrs)
        if type_path and not _within(record_type, type_path):
            continue
        if selectors.record_id and not _matches_id(candidate, attrs, selectors.record_id):
            continue
        if needle is not None and needle not in record.body.lower():
            continue
        if parsed and not evaluate_all(parsed, build_eval_context(candidate.path, vault_root, attrs)):
            continue
        selected.append(TargetedRecord(candidate, attrs, record.body, record_type))

    logger.debug("targeting selected %d of %d candidates", len(selected), len(candidates))
    return TargetingResult(files=selected, warnings=warnings)


_KIND_CODES = {
    "targeting": codes.NO_TARGETING,
    "type": codes.UNKNOWN_TYPE,
    "where": codes.WHERE_INVALID,
}


def targeting_failure(op: str, targeting: TargetingResult) -> ServiceResult:
    """Failed ServiceResult for a targeting error, with a stable code per kind."""
    detail: dict[str, Any] = {"kind": targeting.kind}
    if targeting.suggestions:
        detail["suggestions"] = targeting.suggestions
    if targeting.where_errors:
        detail["errors"] = [e.to_dict() for e in targeting.where_errors]
    return ServiceResult.failure(
        op,
        _KIND_CODES.get(targeting.kind or "", codes.INVALID_OPERATION),
        targeting.error or "Targeting failed",
        detail=detail,
        warnings=targeting.warnings,
    )
