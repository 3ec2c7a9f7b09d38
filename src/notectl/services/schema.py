"""SchemaService: inspect, validate, and snapshot the vault schema.

Four read-mostly surfaces:
- show: the type tree, or one resolved type with its flattened fields
- validate: load the schema, then audit managed records against it
- status: drift between the schema and the last applied snapshot
- snapshot: record the current schema as applied
"""

from __future__ import annotations

import difflib
from typing import Any

from notectl.domain.errors import FrontmatterError, NotectlError
from notectl.domain.links import extract_link_targets, is_quoted_wikilink, is_wikilink
from notectl.domain.resolver import ROOT_DISCRIMINATOR, ResolvedType, TypeResolver
from notectl.domain.schema import FieldDefinition, Schema
from notectl.domain.types import LINK_FORMATS, LinkFormat
from notectl.infrastructure.filesystem import (
    discover_managed_files,
    find_record_by_name,
    read_record,
    scan_vault,
)
from notectl.infrastructure.snapshot import load_snapshot, migration_status, save_snapshot
from notectl.services import result as codes
from notectl.services.base import BaseService
from notectl.services.ownership import build_index, validate_references
from notectl.services.result import ServiceResult
from notectl.services.telemetry import trace_span, traced

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"

CAT_ORPHAN = "orphan-file"
CAT_INVALID_TYPE = "invalid-type"
CAT_WRONG_DIRECTORY = "wrong-directory"
CAT_MISSING = "missing-required"
CAT_INVALID_ENUM = "invalid-enum"
CAT_UNKNOWN_FIELD = "unknown-field"
CAT_FORMAT = "format-violation"
CAT_STALE = "stale-reference"
CAT_OWNERSHIP = "ownership-violation"

# Obsidian properties every record may carry.
NATIVE_FIELDS = frozenset({"tags", "aliases", "cssclasses"})


def _field_summary(resolver: TypeResolver, field: FieldDefinition) -> dict[str, Any]:
    summary: dict[str, Any] = {"prompt": str(field.prompt), "required": field.required}
    if field.value is not None:
        summary["value"] = field.value
    if field.default is not None:
        summary["default"] = field.default
    choices = resolver.field_choices(field)
    if choices is not None:
        summary["choices"] = choices
    if field.format != "plain":
        summary["format"] = str(field.format)
    if field.owns:
        summary["owns"] = field.owns
    return summary


def _type_detail(resolver: TypeResolver, resolved: ResolvedType) -> dict[str, Any]:
    return {
        "path": resolved.path,
        "discriminator": resolved.discriminator,
        "child_discriminator": resolved.child_discriminator,
        "lineage": list(resolved.lineage),
        "subtypes": list(resolved.child_paths),
        "output_dir": resolved.output_dir,
        "dir_mode": str(resolved.dir_mode),
        "field_order": list(resolved.field_order),
        "fields": {name: _field_summary(resolver, f) for name, f in resolved.fields.items()},
        "ownership": [
            {"field": d.field_name, "child_type": d.child_type} for d in resolved.ownership
        ],
        "owned_by": [
            {"owner_type": d.owner_type, "field": d.field_name}
            for d in resolver.owner_types_of(resolved.path)
        ],
    }


def _type_tree(resolver: TypeResolver, paths: list[str]) -> list[dict[str, Any]]:
    nodes: list[dict[str, Any]] = []
    for path in paths:
        resolved = resolver.require(path)
        nodes.append(
            {
                "path": path,
                "name": resolved.name,
                "output_dir": resolved.output_dir,
                "dir_mode": str(resolved.dir_mode),
                "field_count": len(resolved.fields),
                "owns": [d.child_type for d in resolved.ownership],
                "subtypes": _type_tree(resolver, list(resolved.child_paths)),
            }
        )
    return nodes


class SchemaService(BaseService):
    """Schema inspection for the ``schema`` command group."""

    @traced
    def show(self, type_path: str | None = None) -> ServiceResult:
        op = "schema_show"
        try:
            schema = self._vault.load_schema()
        except NotectlError as exc:
            return self._from_error(op, exc)
        resolver = TypeResolver(schema)

        if type_path:
            resolved = resolver.resolve(type_path)
            if resolved is None:
                limit = self._vault.settings.targeting.near_match_limit
                suggestions = resolver.close_type_matches(type_path, limit=limit)
                message = f"Unknown type: '{type_path}'"
                if suggestions:
                    message += f". Did you mean: {', '.join(suggestions)}?"
                return ServiceResult.failure(
                    op, codes.UNKNOWN_TYPE, message, detail={"suggestions": suggestions}
                )
            return ServiceResult(ok=True, op=op, data={"type": _type_detail(resolver, resolved)})

        data = {
            "schema_version": schema.schema_version,
            "enums": {name: list(values) for name, values in schema.enums.items()},
            "shared_fields": list(schema.shared_fields),
            "types": _type_tree(resolver, list(schema.types)),
        }
        return ServiceResult(ok=True, op=op, data=data)

    @traced
    def validate(self) -> ServiceResult:
        """Validate the schema, then audit every managed record against it."""
        op = "schema_validate"
        try:
            schema = self._vault.load_schema()
        except NotectlError as exc:
            return self._from_error(op, exc)

        with trace_span("audit_records"):
            issues, checked = self._audit(schema)
        errors = sum(1 for i in issues if i["severity"] == SEVERITY_ERROR)
        data = {
            "schema_file": self._vault.schema_file.relative_to(self._vault.root).as_posix(),
            "type_count": len(TypeResolver(schema).type_paths()),
            "records_checked": checked,
            "issues": issues,
            "error_count": errors,
            "warning_count": len(issues) - errors,
            "healthy": not issues,
        }
        return ServiceResult(ok=True, op=op, data=data)

    def _audit(self, schema: Schema) -> tuple[list[dict[str, Any]], int]:
        resolver = TypeResolver(schema)
        root = self._vault.root
        ignored = self._vault.ignored_directories(schema)
        allowed = NATIVE_FIELDS | set(schema.audit.allowed_extra_fields)
        candidates = [f.relative_path for f in scan_vault(root, ignored=ignored)]
        index = build_index(schema, root)

        issues: list[dict[str, Any]] = []
        seen: set[str] = set()
        for root_type in schema.types:
            for managed in discover_managed_files(resolver, root, root_type, ignored=ignored):
                if managed.relative_path in seen:
                    continue
                seen.add(managed.relative_path)
                path = managed.relative_path
                try:
                    attrs = read_record(managed.path).frontmatter
                except (FrontmatterError, OSError) as exc:
                    issues.append(_issue(path, SEVERITY_ERROR, CAT_ORPHAN, str(exc)))
                    continue

                type_path = resolver.resolve_type_path_from_frontmatter(attrs)
                if type_path is None:
                    issues.append(_type_issue(resolver, path, attrs, managed.expected_type))
                    continue
                issues.extend(_directory_issues(resolver, path, type_path, managed.expected_type))

                fields = resolver.fields_for(type_path)
                for name, definition in fields.items():
                    if definition.required and attrs.get(name) in (None, "", []):
                        issues.append(
                            _issue(
                                path,
                                SEVERITY_WARNING,
                                CAT_MISSING,
                                f"Missing required field '{name}' for type '{type_path}'",
                                field=name,
                            )
                        )
                for name, value in attrs.items():
                    definition = fields.get(name)
                    if definition is None:
                        if name != ROOT_DISCRIMINATOR and not name.endswith("-type") and name not in allowed:
                            issues.append(_unknown_field_issue(path, name, list(fields)))
                        continue
                    issues.extend(_enum_issues(resolver, path, name, definition, value))
                    issues.extend(_format_issues(path, name, definition, value))
                    if definition.format in LINK_FORMATS:
                        for target in extract_link_targets(value):
                            if find_record_by_name(root, target, candidates) is None:
                                issues.append(
                                    _issue(
                                        path,
                                        SEVERITY_WARNING,
                                        CAT_STALE,
                                        f"'{name}' links to missing record '{target}'",
                                        field=name,
                                    )
                                )

                ownership = validate_references(schema, index, path, attrs, root, candidates=candidates)
                for violation in ownership.errors:
                    issues.append(_issue(path, SEVERITY_ERROR, CAT_OWNERSHIP, violation.message))
        return issues, len(seen)

    @traced
    def status(self) -> ServiceResult:
        op = "schema_status"
        try:
            schema = self._vault.load_schema()
            snapshot = load_snapshot(self._vault.root)
        except NotectlError as exc:
            return self._from_error(op, exc)
        status = migration_status(schema, snapshot)
        data = status.to_dict()
        data["snapshot_at"] = snapshot.snapshot_at if snapshot else None
        return ServiceResult(ok=True, op=op, data=data)

    @traced
    def snapshot(self) -> ServiceResult:
        op = "schema_snapshot"
        try:
            schema = self._vault.load_schema()
        except NotectlError as exc:
            return self._from_error(op, exc)
        snapshot = save_snapshot(self._vault.root, schema)
        return ServiceResult(
            ok=True,
            op=op,
            data={"schema_version": snapshot.schema_version, "snapshot_at": snapshot.snapshot_at},
        )


def _issue(
    path: str,
    severity: str,
    category: str,
    message: str,
    *,
    field: str | None = None,
    suggestion: str | None = None,
) -> dict[str, Any]:
    issue: dict[str, Any] = {"path": path, "severity": severity, "category": category, "message": message}
    if field is not None:
        issue["field"] = field
    if suggestion is not None:
        issue["suggestion"] = suggestion
    return issue


def _items(value: Any) -> list[Any]:
    items = value if isinstance(value, list) else [value]
    return [item for item in items if item not in (None, "")]


def _type_issue(resolver: TypeResolver, path: str, attrs: dict[str, Any], expected: str | None) -> dict[str, Any]:
    value = attrs.get(ROOT_DISCRIMINATOR)
    if value in (None, ""):
        message = "No 'type' field"
        if expected:
            message += f" (expected '{expected}')"
        return _issue(path, SEVERITY_ERROR, CAT_ORPHAN, message, field=ROOT_DISCRIMINATOR)
    matches = resolver.close_type_matches(str(value), limit=1)
    return _issue(
        path,
        SEVERITY_ERROR,
        CAT_INVALID_TYPE,
        f"Type could not be resolved from '{value}' (expected '{expected}')",
        field=ROOT_DISCRIMINATOR,
        suggestion=matches[0] if matches else None,
    )


def _directory_issues(
    resolver: TypeResolver, path: str, type_path: str, expected: str | None
) -> list[dict[str, Any]]:
    resolved = resolver.resolve(type_path)
    if expected is None or resolved is None or not resolved.output_dir:
        return []
    folder = path.rsplit("/", 1)[0] if "/" in path else ""
    output_dir = resolved.output_dir.strip("/")
    if folder == output_dir or folder.startswith(f"{output_dir}/"):
        return []
    return [
        _issue(
            path,
            SEVERITY_ERROR,
            CAT_WRONG_DIRECTORY,
            f"Type '{type_path}' belongs in '{output_dir}', found in '{folder or '.'}'",
            suggestion=output_dir,
        )
    ]


def _enum_issues(
    resolver: TypeResolver, path: str, name: str, definition: FieldDefinition, value: Any
) -> list[dict[str, Any]]:
    choices = resolver.field_choices(definition)
    if not choices:
        return []
    issues: list[dict[str, Any]] = []
    for item in _items(value):
        if str(item) in choices:
            continue
        close = difflib.get_close_matches(str(item), choices, n=1, cutoff=0.6)
        issues.append(
            _issue(
                path,
                SEVERITY_ERROR,
                CAT_INVALID_ENUM,
                f"Invalid value '{item}' for '{name}' (allowed: {', '.join(choices)})",
                field=name,
                suggestion=close[0] if close else None,
            )
        )
    return issues


def _format_issues(path: str, name: str, definition: FieldDefinition, value: Any) -> list[dict[str, Any]]:
    items = [str(item) for item in _items(value)]
    if definition.format in LINK_FORMATS:
        plain = [item for item in items if not (is_wikilink(item) or is_quoted_wikilink(item))]
        if not plain:
            return []
        return [
            _issue(
                path,
                SEVERITY_ERROR,
                CAT_FORMAT,
                f"'{name}' should be a {definition.format}, got '{plain[0]}'",
                field=name,
                suggestion=f"[[{plain[0]}]]",
            )
        ]
    if definition.format == LinkFormat.PLAIN and any(is_wikilink(item) or is_quoted_wikilink(item) for item in items):
        return [
            _issue(
                path,
                SEVERITY_WARNING,
                CAT_FORMAT,
                f"'{name}' is plain text but holds a wikilink",
                field=name,
            )
        ]
    return []


def _unknown_field_issue(path: str, name: str, known: list[str]) -> dict[str, Any]:
    close = difflib.get_close_matches(name, known, n=1, cutoff=0.6)
    return _issue(
        path,
        SEVERITY_WARNING,
        CAT_UNKNOWN_FIELD,
        f"Field '{name}' is not declared for this type",
        field=name,
        suggestion=close[0] if close else None,
    )
