"""Bulk delete under the two-gate model.

Deleting an owner record does not delete the records it owns; each row
lists the owned children that would be left behind so the caller can
include them in the selection or relocate them first.
"""

from __future__ import annotations

import logging

from notectl.domain.errors import NotectlError
from notectl.infrastructure.filesystem import create_backup
from notectl.services.base import BaseService
from notectl.services.contracts import DeleteResultData, dump_validated
from notectl.services.ownership import build_index
from notectl.services.result import ServiceResult
from notectl.services.targeting import SelectorSet, resolve_targets, targeting_failure
from notectl.services.telemetry import trace_span, traced

logger = logging.getLogger(__name__)


class DeleteService(BaseService):
    """Delete targeted records (preview unless ``execute``)."""

    @traced
    def delete(self, selectors: SelectorSet, *, backup: bool | None = None) -> ServiceResult:
        op = "delete"
        try:
            schema = self._vault.load_schema()
        except NotectlError as exc:
            return self._from_error(op, exc)

        settings = self._vault.settings
        root = self._vault.root
        with trace_span("resolve_targets"):
            targeting = resolve_targets(
                selectors,
                schema,
                root,
                ignored=self._vault.ignored_directories(schema),
                near_match_limit=settings.targeting.near_match_limit,
            )
        if not targeting.ok:
            return targeting_failure(op, targeting)

        index = build_index(schema, root)
        selected = {record.path for record in targeting.files}
        warnings = list(targeting.warnings)
        rows: list[dict[str, object]] = []
        for record in targeting.files:
            left_behind = sorted(index.owner_to_owned.get(record.path, set()) - selected)
            if left_behind:
                warnings.append(
                    f"{record.path} owns {len(left_behind)} record(s) that will be left behind"
                )
            rows.append(
                {
                    "path": record.path,
                    "type": record.type_path,
                    "orphaned_children": left_behind,
                    "error": None,
                }
            )

        errors: list[str] = []
        backup_path: str | None = None
        use_backup = settings.bulk.backup if backup is None else backup
        if selectors.execute and targeting.files:
            if use_backup:
                folder = create_backup(root, settings.bulk.backup_dir, sorted(selected), "delete")
                backup_path = folder.relative_to(root).as_posix()
            with trace_span("unlink"):
                for row, record in zip(rows, targeting.files, strict=True):
                    try:
                        record.file.path.unlink()
                    except OSError as exc:
                        row["error"] = f"Delete failed: {exc}"
                        errors.append(f"{record.path}: {row['error']}")
                        logger.warning("delete failed for %s: %s", record.path, exc)

        data = {
            "dry_run": selectors.dry_run,
            "count": len(rows),
            "records": rows,
            "backup_path": backup_path,
            "errors": errors,
        }
        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(DeleteResultData, data),
            warnings=warnings,
        )
