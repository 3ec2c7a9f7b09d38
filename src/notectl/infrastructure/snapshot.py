"""Applied-schema snapshots for drift detection.

``.notectl/schema.applied.json`` records the schema last marked as
applied to the vault. Comparing it with the current schema tells whether
records may still follow an older shape.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from notectl.domain.errors import SchemaLoadError
from notectl.domain.schema import Schema
from notectl.infrastructure.filesystem import atomic_write_text

SNAPSHOT_RELATIVE_PATH = ".notectl/schema.applied.json"


class SchemaSnapshot(BaseModel):
    model_config = {"frozen": True}

    schema_version: str | None = None
    snapshot_at: str
    schema_: dict[str, Any]

    def to_json(self) -> str:
        data = {
            "schema_version": self.schema_version,
            "snapshot_at": self.snapshot_at,
            "schema": self.schema_,
        }
        return json.dumps(data, indent=2, sort_keys=False) + "\n"


@dataclass(frozen=True)
class MigrationStatus:
    has_snapshot: bool
    pending: bool
    from_version: str | None = None
    to_version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "has_snapshot": self.has_snapshot,
            "pending": self.pending,
            "from_version": self.from_version,
            "to_version": self.to_version,
        }


def _comparable(schema: Schema) -> dict[str, Any]:
    return schema.model_dump(mode="json", exclude_defaults=True)


def snapshot_path(vault_root: Path) -> Path:
    return vault_root / SNAPSHOT_RELATIVE_PATH


def load_snapshot(vault_root: Path) -> SchemaSnapshot | None:
    """Load the applied snapshot; None when none has been recorded.

    Raises:
        SchemaLoadError: If the snapshot file exists but is corrupt.
    """
    path = snapshot_path(vault_root)
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return SchemaSnapshot(
            schema_version=data.get("schema_version"),
            snapshot_at=data["snapshot_at"],
            schema_=data["schema"],
        )
    except (json.JSONDecodeError, KeyError, TypeError, AttributeError, ValidationError) as exc:
        msg = f"Corrupt schema snapshot {path}: {exc}"
        raise SchemaLoadError(msg) from exc


def save_snapshot(vault_root: Path, schema: Schema) -> SchemaSnapshot:
    """Record *schema* as applied, atomically (temp file then rename)."""
    snapshot = SchemaSnapshot(
        schema_version=schema.schema_version,
        snapshot_at=datetime.now(UTC).isoformat(),
        schema_=_comparable(schema),
    )
    atomic_write_text(snapshot_path(vault_root), snapshot.to_json())
    return snapshot


def migration_status(schema: Schema, snapshot: SchemaSnapshot | None) -> MigrationStatus:
    """Compare the current *schema* with the recorded *snapshot*."""
    if snapshot is None:
        return MigrationStatus(has_snapshot=False, pending=False, to_version=schema.schema_version)
    return MigrationStatus(
        has_snapshot=True,
        pending=_comparable(schema) != snapshot.schema_,
        from_version=snapshot.schema_version,
        to_version=schema.schema_version,
    )
