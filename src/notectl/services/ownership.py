"""Ownership index and exclusivity validation.

An owner type declares a field with ``owns: <child type>``. Records of
the child type stored under an owner's folder (see
:func:`~notectl.infrastructure.filesystem.locate_owned_children`) are
*owned*: only their owner may reference them from a schema link field.
Records anywhere else are *pooled* and may be referenced by anyone.

The index is rebuilt from the filesystem on every call; it is never
cached between operations.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from notectl.domain.errors import FrontmatterError, NotectlError, OwnershipViolation
from notectl.domain.links import extract_link_targets
from notectl.domain.resolver import OwnershipDeclaration, TypeResolver
from notectl.domain.schema import Schema
from notectl.domain.types import LINK_FORMATS
from notectl.infrastructure.filesystem import (
    find_record_by_name,
    list_owner_records,
    locate_owned_children,
    read_record,
    relative_posix,
    resolve_in_vault,
    scan_vault,
)
from notectl.services import result as codes
from notectl.services.base import BaseService
from notectl.services.contracts import OwnershipCheckData, OwnershipIndexData, dump_validated
from notectl.services.result import ServiceResult
from notectl.services.telemetry import annotate, traced

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OwnedRecordInfo:
    record_path: str
    owner_path: str
    owner_type: str
    field_name: str

    def to_dict(self) -> dict[str, str]:
        return {
            "record_path": self.record_path,
            "owner_path": self.owner_path,
            "owner_type": self.owner_type,
            "field_name": self.field_name,
        }


@dataclass
class OwnershipIndex:
    """Owned record path -> owner info, plus the reverse mapping."""

    owned: dict[str, OwnedRecordInfo] = field(default_factory=dict)
    owner_to_owned: dict[str, set[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class OwnershipValidation:
    valid: bool
    errors: list[OwnershipViolation] = field(default_factory=list)

    @classmethod
    def from_errors(cls, errors: list[OwnershipViolation]) -> OwnershipValidation:
        return cls(valid=not errors, errors=errors)


# ---------------------------------------------------------------------------
# Index
# ---------------------------------------------------------------------------


def build_index(schema: Schema, vault_root: Path) -> OwnershipIndex:
    """Scan every owner type's output directory and index owned records."""
    resolver = TypeResolver(schema)
    by_owner: dict[str, list[OwnershipDeclaration]] = {}
    for decl in resolver.ownership_declarations():
        by_owner.setdefault(decl.owner_type, []).append(decl)

    index = OwnershipIndex()
    for owner_type, declarations in by_owner.items():
        resolved = resolver.resolve(owner_type)
        if resolved is None or not resolved.output_dir:
            continue
        for owner_record in list_owner_records(vault_root, resolved.output_dir):
            owner_path = relative_posix(owner_record, vault_root)
            for decl in declarations:
                for child in locate_owned_children(owner_record, decl.child_type):
                    child_path = relative_posix(child, vault_root)
                    existing = index.owned.get(child_path)
                    if existing is not None:
                        if existing.owner_path != owner_path:
                            logger.warning(
                                "%s found under two owners (%s, %s)",
                                child_path,
                                existing.owner_path,
                                owner_path,
                            )
                        continue
                    index.owned[child_path] = OwnedRecordInfo(
                        child_path, owner_path, owner_type, decl.field_name
                    )
                    index.owner_to_owned.setdefault(owner_path, set()).add(child_path)
    return index


def is_owned(index: OwnershipIndex, path: str) -> OwnedRecordInfo | None:
    return index.owned.get(path)


def can_reference(index: OwnershipIndex, from_path: str, to_path: str) -> OwnershipValidation:
    """May the record at *from_path* reference *to_path* from a schema field?"""
    info = index.owned.get(to_path)
    if info is None or info.owner_path == from_path:
        return OwnershipValidation(valid=True)
    violation = OwnershipViolation(
        kind="referencing_owned",
        record_path=to_path,
        message=f"Cannot reference owned record '{to_path}': it is owned by '{info.owner_path}'",
        details={
            "owner_type": info.owner_type,
            "owner_path": info.owner_path,
            "referencing_record": from_path,
        },
    )
    return OwnershipValidation(valid=False, errors=[violation])


def validate_new_ownership(index: OwnershipIndex, candidate: str, owner: str) -> OwnershipValidation:
    """May *owner* take ownership of *candidate*? Idempotent for the same owner."""
    info = index.owned.get(candidate)
    if info is None or info.owner_path == owner:
        return OwnershipValidation(valid=True)
    violation = OwnershipViolation(
        kind="already_owned",
        record_path=candidate,
        message=f"Record '{candidate}' is already owned by '{info.owner_path}'",
        details={
            "owner_type": info.owner_type,
            "owner_path": info.owner_path,
            "attempted_owner": owner,
        },
    )
    return OwnershipValidation(valid=False, errors=[violation])


def validate_references(
    schema: Schema,
    index: OwnershipIndex,
    record_path: str,
    attrs: Mapping[str, Any],
    vault_root: Path,
    *,
    only_fields: Iterable[str] | None = None,
    candidates: list[str] | None = None,
) -> OwnershipValidation:
    """Check every link-format field of a record against the index.

    Args:
        only_fields: Restrict the check to these field names.
        candidates: Vault-relative record paths for basename lookup
            (scanned from the vault when omitted).
    """
    resolver = TypeResolver(schema)
    type_path = resolver.resolve_type_path_from_frontmatter(attrs)
    if type_path is None:
        return OwnershipValidation(valid=True)
    fields = resolver.fields_for(type_path)
    wanted = set(only_fields) if only_fields is not None else None

    errors: list[OwnershipViolation] = []
    for name, definition in fields.items():
        if definition.format not in LINK_FORMATS or name not in attrs:
            continue
        if wanted is not None and name not in wanted:
            continue
        for target in extract_link_targets(attrs[name]):
            if candidates is None:
                candidates = [f.relative_path for f in scan_vault(vault_root)]
            target_path = find_record_by_name(vault_root, target, candidates)
            if target_path is None:
                continue
            errors.extend(can_reference(index, record_path, target_path).errors)
    return OwnershipValidation.from_errors(errors)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class OwnershipService(BaseService):
    """Ownership inspection for the ``ownership`` command group."""

    @traced
    def show(self) -> ServiceResult:
        op = "ownership_show"
        try:
            schema = self._vault.load_schema()
        except NotectlError as exc:
            return self._from_error(op, exc)
        index = build_index(schema, self._vault.root)
        annotate(owned=len(index.owned))
        data = {
            "count": len(index.owned),
            "owners": {owner: sorted(paths) for owner, paths in sorted(index.owner_to_owned.items())},
            "owned": [index.owned[path].to_dict() for path in sorted(index.owned)],
        }
        return ServiceResult(ok=True, op=op, data=dump_validated(OwnershipIndexData, data))

    @traced
    def check_record(self, path: str) -> ServiceResult:
        """Validate the link fields of the record at *path*."""
        op = "ownership_check"
        try:
            schema = self._vault.load_schema()
            absolute = resolve_in_vault(self._vault.root, path)
        except NotectlError as exc:
            return self._from_error(op, exc)
        except ValueError as exc:
            return ServiceResult.failure(op, codes.INVALID_OPERATION, str(exc))
        if not absolute.is_file():
            return ServiceResult.failure(op, codes.NOT_FOUND, f"No record at '{path}'")

        relative = relative_posix(absolute, self._vault.root)
        try:
            record = read_record(absolute)
        except FrontmatterError as exc:
            return self._from_error(op, exc)

        index = build_index(schema, self._vault.root)
        validation = validate_references(schema, index, relative, record.frontmatter, self._vault.root)
        owner = is_owned(index, relative)
        return self._check_result(op, relative, validation, owner.owner_path if owner else None)

    @traced
    def check_new_owned(self, candidate: str, owner: str) -> ServiceResult:
        """Could *owner* take ownership of *candidate*?"""
        op = "ownership_can_own"
        try:
            schema = self._vault.load_schema()
        except NotectlError as exc:
            return self._from_error(op, exc)
        if not (self._vault.root / owner).is_file():
            return ServiceResult.failure(op, codes.NOT_FOUND, f"No owner record at '{owner}'")
        index = build_index(schema, self._vault.root)
        validation = validate_new_ownership(index, candidate, owner)
        info = is_owned(index, candidate)
        return self._check_result(op, candidate, validation, info.owner_path if info else None)

    @staticmethod
    def _check_result(
        op: str,
        path: str,
        validation: OwnershipValidation,
        owned_by: str | None,
    ) -> ServiceResult:
        data = dump_validated(
            OwnershipCheckData,
            {
                "path": path,
                "valid": validation.valid,
                "owned_by": owned_by,
                "violations": [v.to_dict() for v in validation.errors],
            },
        )
        if validation.valid:
            return ServiceResult(ok=True, op=op, data=data)
        return ServiceResult.failure(
            op,
            codes.OWNERSHIP_VIOLATION,
            "; ".join(v.message for v in validation.errors),
            detail=data,
        )
