"""Tests for BulkService: preview, execute, conflicts, and ownership."""

from __future__ import annotations

import json
from pathlib import Path

from notectl.domain.bulk import BulkOperation, OperationType, build_operations
from notectl.infrastructure.filesystem import read_content_file
from notectl.infrastructure.vault import Vault
from notectl.services.bulk import BulkService
from notectl.services.targeting import SelectorSet
from tests.conftest import RECORDS


def _set_status(value: str) -> list[BulkOperation]:
    return [BulkOperation(OperationType.SET, "status", value)]


class TestPreview:
    def test_dry_run_changes_nothing(self, vault: Vault, vault_root: Path) -> None:
        result = BulkService(vault).apply(SelectorSet(type_path="idea"), _set_status("active"))
        assert result.ok
        data = result.data
        assert data["dry_run"] is True
        assert data["total_files"] == 3
        assert data["affected_files"] == 2
        assert [r["path"] for r in data["records"]] == ["Ideas/beta.md", "Ideas/loose.md"]
        assert data["backup_path"] is None
        for relative, text in RECORDS.items():
            assert (vault_root / relative).read_text(encoding="utf-8") == text
        assert not (vault_root / ".notectl" / "backups").exists()

    def test_change_rows(self, vault: Vault) -> None:
        result = BulkService(vault).apply(SelectorSet(type_path="idea"), _set_status("active"))
        beta, loose = result.data["records"]
        assert beta["changes"] == [
            {"operation": "set", "field": "status", "old_value": "raw", "new_value": "active", "new_field": None}
        ]
        assert loose["changes"][0]["old_value"] is None
        assert result.data["operations"] == ["set status=active"]
        assert result.data["change_count"] == 2

    def test_preview_and_execute_rows_match(self, vault: Vault) -> None:
        service = BulkService(vault)
        preview = service.apply(SelectorSet(type_path="idea"), _set_status("done"))
        executed = service.apply(SelectorSet(type_path="idea", execute=True), _set_status("done"))
        assert preview.data["records"] == executed.data["records"]
        assert executed.data["dry_run"] is False

    def test_limit(self, vault: Vault) -> None:
        result = BulkService(vault).apply(SelectorSet(type_path="idea"), _set_status("done"), limit=1)
        assert result.data["total_files"] == 3
        assert result.data["affected_files"] == 1
        assert result.data["records"][0]["path"] == "Ideas/alpha.md"


class TestExecute:
    def test_writes_and_backs_up(self, vault: Vault, vault_root: Path) -> None:
        selectors = SelectorSet(type_path="objective/task", execute=True)
        result = BulkService(vault).apply(selectors, _set_status("done"))
        assert result.ok
        assert result.data["affected_files"] == 1
        fm, body = read_content_file(vault_root / "Objectives/Tasks/write-tests.md")
        assert fm["status"] == "done"
        assert fm["priority"] == "high"
        assert body == "Write the tests.\n"

        backup = vault_root / result.data["backup_path"]
        assert backup.parent == vault_root / ".notectl" / "backups"
        saved = backup / "Objectives/Tasks/write-tests.md"
        assert saved.read_text(encoding="utf-8") == RECORDS["Objectives/Tasks/write-tests.md"]
        manifest = json.loads((backup / "manifest.json").read_text(encoding="utf-8"))
        assert manifest["operation"] == "bulk set status=done"

    def test_no_backup(self, vault: Vault, vault_root: Path) -> None:
        selectors = SelectorSet(type_path="idea", execute=True)
        result = BulkService(vault).apply(selectors, _set_status("done"), backup=False)
        assert result.data["backup_path"] is None
        assert not (vault_root / ".notectl" / "backups").exists()

    def test_untouched_files_are_not_rewritten(self, vault: Vault, vault_root: Path) -> None:
        selectors = SelectorSet(type_path="idea", execute=True)
        BulkService(vault).apply(selectors, _set_status("active"))
        assert (vault_root / "Ideas/alpha.md").read_text(encoding="utf-8") == RECORDS["Ideas/alpha.md"]

    def test_body_preserved_on_rename(self, vault: Vault, vault_root: Path) -> None:
        ops = build_operations(rename=["priority=importance"])
        BulkService(vault).apply(SelectorSet(type_path="objective", execute=True), ops)
        fm, body = read_content_file(vault_root / "Objectives/Tasks/ship.md")
        assert "priority" not in fm
        assert fm["importance"] == "low"
        assert list(fm)[:3] == ["type", "objective-type", "status"]
        assert body == "Ship it.\n"


class TestFailures:
    def test_requires_targeting(self, vault: Vault) -> None:
        result = BulkService(vault).apply(SelectorSet(execute=True), _set_status("done"))
        assert result.error is not None
        assert result.error.code == "NO_TARGETING"

    def test_empty_operations(self, vault: Vault) -> None:
        result = BulkService(vault).apply(SelectorSet(select_all=True), [])
        assert result.error is not None
        assert result.error.code == "INVALID_OPERATION"

    def test_rename_conflict_aborts_batch(self, vault: Vault, vault_root: Path) -> None:
        ops = build_operations(rename=["title=status"])
        result = BulkService(vault).apply(SelectorSet(type_path="idea", execute=True), ops)
        assert result.error is not None
        assert result.error.code == "BULK_CONFLICT"
        assert result.error.detail["path"] == "Ideas/alpha.md"
        for relative in ("Ideas/alpha.md", "Ideas/beta.md", "Ideas/loose.md"):
            assert (vault_root / relative).read_text(encoding="utf-8") == RECORDS[relative]

    def test_ownership_violation_is_per_record(self, vault: Vault, vault_root: Path) -> None:
        ops = build_operations(append=["related=[[seed]]"])
        result = BulkService(vault).apply(SelectorSet(type_path="draft", execute=True), ops)
        assert result.ok
        rows = {r["path"]: r for r in result.data["records"]}
        assert rows["Drafts/essay/essay.md"]["error"] is None
        assert "owned by 'Drafts/essay/essay.md'" in rows["Drafts/other/other.md"]["error"]
        assert len(result.data["errors"]) == 1
        other = read_content_file(vault_root / "Drafts/other/other.md")[0]
        assert other["related"] == []
        essay = read_content_file(vault_root / "Drafts/essay/essay.md")[0]
        assert essay["related"] == ["[[loose]]", "[[seed]]"]

    def test_unknown_type(self, vault: Vault) -> None:
        result = BulkService(vault).apply(SelectorSet(type_path="task"), _set_status("done"))
        assert result.error is not None
        assert result.error.code == "UNKNOWN_TYPE"
        assert result.error.detail["suggestions"][0] == "objective/task"
