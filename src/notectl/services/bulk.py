"""Bulk frontmatter edits over a targeted record set.

Flow of :meth:`BulkService.apply`:

1. validate the operation set (ill-formed sets never touch a file);
2. resolve targets (Gate 1);
3. plan every record's changes in memory; a class-level conflict such
   as a rename onto an existing field aborts here, before any write;
4. check ownership rules for link fields the plan modifies;
5. preview (default) or, with ``execute=True``, back up and write
   (Gate 2). Per-record failures are collected and the batch continues.

Preview and execute payloads share :class:`~notectl.services.contracts.BulkRecord`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from notectl.domain.bulk import (
    BulkOperation,
    FieldChange,
    apply_operations,
    describe_operations,
    validate_operations,
)
from notectl.domain.errors import BulkOperationError, NotectlError
from notectl.domain.resolver import TypeResolver
from notectl.domain.schema import Schema
from notectl.infrastructure.filesystem import create_backup, scan_vault, write_content_file
from notectl.services import result as codes
from notectl.services._helpers import jsonable
from notectl.services.base import BaseService
from notectl.services.contracts import BulkResultData, dump_validated
from notectl.services.ownership import build_index, validate_references
from notectl.services.result import ServiceResult
from notectl.services.targeting import SelectorSet, TargetedRecord, resolve_targets, targeting_failure
from notectl.services.telemetry import annotate, trace_span, traced

logger = logging.getLogger(__name__)


@dataclass
class _Plan:
    record: TargetedRecord
    modified: dict[str, Any]
    changes: list[FieldChange]
    error: str | None = None
    touched: set[str] = field(default_factory=set)

    def row(self) -> dict[str, Any]:
        return {
            "path": self.record.path,
            "type": self.record.type_path,
            "changes": [jsonable(c.to_dict()) for c in self.changes],
            "error": self.error,
        }


class BulkService(BaseService):
    """Apply bulk operations to targeted records."""

    @traced
    def apply(
        self,
        selectors: SelectorSet,
        operations: Sequence[BulkOperation],
        *,
        limit: int | None = None,
        backup: bool | None = None,
    ) -> ServiceResult:
        op = "bulk"
        try:
            validate_operations(operations)
        except BulkOperationError as exc:
            return ServiceResult.failure(op, codes.INVALID_OPERATION, str(exc))

        try:
            schema = self._vault.load_schema()
        except NotectlError as exc:
            return self._from_error(op, exc)

        settings = self._vault.settings
        with trace_span("resolve_targets"):
            targeting = resolve_targets(
                selectors,
                schema,
                self._vault.root,
                ignored=self._vault.ignored_directories(schema),
                near_match_limit=settings.targeting.near_match_limit,
            )
        if not targeting.ok:
            return targeting_failure(op, targeting)

        plans: list[_Plan] = []
        with trace_span("plan"):
            for record in targeting.files:
                try:
                    modified, changes = apply_operations(record.frontmatter, operations)
                except BulkOperationError as exc:
                    return ServiceResult.failure(
                        op,
                        codes.BULK_CONFLICT,
                        f"{record.path}: {exc}",
                        detail={"path": record.path},
                        warnings=targeting.warnings,
                    )
                if changes:
                    touched = {c.new_field or c.field for c in changes}
                    plans.append(_Plan(record, modified, changes, touched=touched))
        if limit is not None and limit > 0:
            plans = plans[:limit]

        with trace_span("ownership"):
            self._check_ownership(schema, plans)

        errors: list[str] = [f"{p.record.path}: {p.error}" for p in plans if p.error]
        backup_path: str | None = None
        writable = [p for p in plans if p.error is None]
        use_backup = settings.bulk.backup if backup is None else backup

        if selectors.execute and writable:
            if use_backup:
                folder = create_backup(
                    self._vault.root,
                    settings.bulk.backup_dir,
                    [p.record.path for p in writable],
                    describe_operations(operations),
                )
                backup_path = folder.relative_to(self._vault.root).as_posix()
            with trace_span("write"):
                for plan in writable:
                    try:
                        write_content_file(plan.record.file.path, plan.modified, plan.record.body)
                    except OSError as exc:
                        plan.error = f"Write failed: {exc}"
                        errors.append(f"{plan.record.path}: {plan.error}")
                        logger.warning("bulk write failed for %s: %s", plan.record.path, exc)

        annotate(matched=len(targeting.files), affected=len(plans))

        data = {
            "dry_run": selectors.dry_run,
            "operations": [o.describe() for o in operations],
            "total_files": len(targeting.files),
            "affected_files": len(plans),
            "change_count": sum(len(p.changes) for p in plans),
            "records": [p.row() for p in plans],
            "backup_path": backup_path,
            "errors": errors,
        }
        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(BulkResultData, data),
            warnings=targeting.warnings,
        )

    def _check_ownership(self, schema: Schema, plans: list[_Plan]) -> None:
        """Flag records whose modified link fields would reference owned records."""
        if not plans or not TypeResolver(schema).ownership_declarations():
            return
        root = self._vault.root
        index = build_index(schema, root)
        if not index.owned:
            return
        candidates = [f.relative_path for f in scan_vault(root)]
        for plan in plans:
            validation = validate_references(
                schema,
                index,
                plan.record.path,
                plan.modified,
                root,
                only_fields=plan.touched,
                candidates=candidates,
            )
            if not validation.valid:
                plan.error = "; ".join(v.message for v in validation.errors)

