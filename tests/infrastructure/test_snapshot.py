"""Tests for applied-schema snapshots and drift status."""

from __future__ import annotations

from pathlib import Path

import pytest

from notectl.domain.errors import SchemaLoadError
from notectl.domain.schema import Schema
from notectl.infrastructure.schema_loader import parse_schema
from notectl.infrastructure.snapshot import (
    SNAPSHOT_RELATIVE_PATH,
    load_snapshot,
    migration_status,
    save_snapshot,
)


class TestSnapshot:
    def test_none_recorded(self, tmp_path: Path, schema: Schema) -> None:
        assert load_snapshot(tmp_path) is None
        status = migration_status(schema, None)
        assert status.has_snapshot is False
        assert status.pending is False
        assert status.to_version == "1.0"

    def test_save_and_load(self, tmp_path: Path, schema: Schema) -> None:
        saved = save_snapshot(tmp_path, schema)
        assert (tmp_path / SNAPSHOT_RELATIVE_PATH).is_file()
        assert not (tmp_path / (SNAPSHOT_RELATIVE_PATH + ".tmp")).exists()
        loaded = load_snapshot(tmp_path)
        assert loaded is not None
        assert loaded.snapshot_at == saved.snapshot_at
        assert migration_status(schema, loaded).pending is False

    def test_drift_detected(self, tmp_path: Path, schema: Schema) -> None:
        save_snapshot(tmp_path, schema)
        changed = parse_schema({"schema_version": "2.0", "types": {"idea": {}}})
        status = migration_status(changed, load_snapshot(tmp_path))
        assert status.pending is True
        assert status.from_version == "1.0"
        assert status.to_version == "2.0"
        assert status.to_dict()["pending"] is True

    def test_corrupt_snapshot(self, tmp_path: Path) -> None:
        path = tmp_path / SNAPSHOT_RELATIVE_PATH
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(SchemaLoadError, match="Corrupt schema snapshot"):
            load_snapshot(tmp_path)
