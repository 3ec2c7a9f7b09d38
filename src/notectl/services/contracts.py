"""Typed payload contracts for service and adapter boundaries.

These models validate payload shapes before they leave the service layer
so drift (for example a preview row gaining a key the executed row lacks)
fails fast in tests. Bulk and delete previews use the very same record
model as their executed counterparts; only ``dry_run`` differs.
"""

from __future__ import annotations

from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T", bound=BaseModel)


def dump_validated(model_cls: type[T], data: dict[str, Any]) -> dict[str, Any]:
    """Validate *data* against *model_cls* and return a normalized payload dict."""
    model = model_cls.model_validate(data)
    return model.model_dump(mode="python")


class RecordItem(BaseModel):
    """One targeted record in a list or dashboard result."""

    path: str
    type: str | None = None
    fields: dict[str, Any] = Field(default_factory=dict)


class ListResultData(BaseModel):
    """Payload contract for ``QueryService.list_records``."""

    count: int
    type: str | None = None
    where: list[str] = Field(default_factory=list)
    items: list[RecordItem]


class DashboardResultData(ListResultData):
    """Payload contract for ``QueryService.dashboard``."""

    name: str
    output: str = "table"
    fields_requested: list[str] = Field(default_factory=list)


class ChangeItem(BaseModel):
    """One field-level edit."""

    operation: Literal["set", "clear", "rename", "delete", "append", "remove"]
    field: str
    old_value: Any = None
    new_value: Any = None
    new_field: str | None = None


class BulkRecord(BaseModel):
    """Per-record row, identical for preview and execute."""

    model_config = ConfigDict(extra="forbid")

    path: str
    type: str | None = None
    changes: list[ChangeItem]
    error: str | None = None


class BulkResultData(BaseModel):
    """Payload contract for ``BulkService.apply``."""

    dry_run: bool
    operations: list[str]
    total_files: int
    affected_files: int
    change_count: int
    records: list[BulkRecord]
    backup_path: str | None = None
    errors: list[str] = Field(default_factory=list)


class DeleteRecord(BaseModel):
    """Per-record delete row, identical for preview and execute."""

    model_config = ConfigDict(extra="forbid")

    path: str
    type: str | None = None
    orphaned_children: list[str] = Field(default_factory=list)
    error: str | None = None


class DeleteResultData(BaseModel):
    """Payload contract for ``DeleteService.delete``."""

    dry_run: bool
    count: int
    records: list[DeleteRecord]
    backup_path: str | None = None
    errors: list[str] = Field(default_factory=list)


class OwnedRecordItem(BaseModel):
    record_path: str
    owner_path: str
    owner_type: str
    field_name: str


class OwnershipIndexData(BaseModel):
    """Payload contract for ``OwnershipService.show``."""

    count: int
    owners: dict[str, list[str]]
    owned: list[OwnedRecordItem]


class ViolationItem(BaseModel):
    kind: Literal["already_owned", "referencing_owned"]
    record_path: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class OwnershipCheckData(BaseModel):
    """Payload contract for ownership checks."""

    path: str
    valid: bool
    owned_by: str | None = None
    violations: list[ViolationItem] = Field(default_factory=list)
