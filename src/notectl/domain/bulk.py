"""Bulk frontmatter operations and their change records.

Pure functions: :func:`apply_operations` takes a frontmatter mapping and
returns a modified copy plus one :class:`FieldChange` per effective edit.
A record with no changes is simply not touched.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from notectl.domain.errors import BulkOperationError


class OperationType(StrEnum):
    SET = "set"
    CLEAR = "clear"
    RENAME = "rename"
    DELETE = "delete"
    APPEND = "append"
    REMOVE = "remove"


@dataclass(frozen=True)
class BulkOperation:
    """One edit applied to every targeted record."""

    operation: OperationType
    field: str
    value: Any = None
    new_field: str | None = None

    def describe(self) -> str:
        if self.operation is OperationType.RENAME:
            return f"rename {self.field}={self.new_field}"
        if self.operation in (OperationType.CLEAR, OperationType.DELETE):
            return f"{self.operation} {self.field}"
        return f"{self.operation} {self.field}={self.value}"


@dataclass(frozen=True)
class FieldChange:
    operation: OperationType
    field: str
    old_value: Any
    new_value: Any
    new_field: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": str(self.operation),
            "field": self.field,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "new_field": self.new_field,
        }


# ---------------------------------------------------------------------------
# Parsing CLI assignments
# ---------------------------------------------------------------------------


def parse_value(text: str) -> Any:
    """Coerce a CLI value: booleans and numbers become typed, the rest stays text."""
    lowered = text.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text


def parse_assignment(text: str, *, option: str) -> tuple[str, str]:
    """Split ``field=value``.

    Raises:
        BulkOperationError: If there is no ``=`` or the field is empty.
    """
    name, sep, value = text.partition("=")
    if not sep or not name.strip():
        msg = f"{option} expects FIELD=VALUE, got '{text}'"
        raise BulkOperationError(msg)
    return name.strip(), value


def build_operations(
    *,
    set_: Sequence[str] = (),
    clear: Sequence[str] = (),
    rename: Sequence[str] = (),
    delete: Sequence[str] = (),
    append: Sequence[str] = (),
    remove: Sequence[str] = (),
) -> list[BulkOperation]:
    """Turn CLI option values into validated operations.

    Kinds run in a fixed order whatever order the options were given in:
    set, clear, rename, delete, append, remove. Repeats of one kind keep
    their given order, so ``--rename a=b --set a=1`` sets ``a`` first.
    """
    ops: list[BulkOperation] = []
    for item in set_:
        name, value = parse_assignment(item, option="--set")
        ops.append(BulkOperation(OperationType.SET, name, parse_value(value)))
    for name in clear:
        ops.append(BulkOperation(OperationType.CLEAR, name.strip()))
    for item in rename:
        old, new = parse_assignment(item, option="--rename")
        ops.append(BulkOperation(OperationType.RENAME, old, new_field=new.strip()))
    for name in delete:
        ops.append(BulkOperation(OperationType.DELETE, name.strip()))
    for item in append:
        name, value = parse_assignment(item, option="--append")
        ops.append(BulkOperation(OperationType.APPEND, name, parse_value(value)))
    for item in remove:
        name, value = parse_assignment(item, option="--remove")
        ops.append(BulkOperation(OperationType.REMOVE, name, parse_value(value)))
    validate_operations(ops)
    return ops


def validate_operations(operations: Sequence[BulkOperation]) -> None:
    """Reject operation sets that can never apply cleanly.

    Raises:
        BulkOperationError: On an empty set, blank field, or bad rename.
    """
    if not operations:
        msg = "No operations given (use --set, --clear, --rename, --delete, --append or --remove)"
        raise BulkOperationError(msg)
    for op in operations:
        if not op.field:
            msg = f"{op.operation} requires a field name"
            raise BulkOperationError(msg)
        if op.operation is OperationType.RENAME:
            if not op.new_field:
                msg = f"rename of '{op.field}' requires a new field name"
                raise BulkOperationError(msg)
            if op.new_field == op.field:
                msg = f"Cannot rename '{op.field}' to itself"
                raise BulkOperationError(msg)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == []


def apply_operations(
    frontmatter: Mapping[str, Any],
    operations: Sequence[BulkOperation],
) -> tuple[dict[str, Any], list[FieldChange]]:
    """Apply *operations* in order to a copy of *frontmatter*.

    Raises:
        BulkOperationError: When a rename targets a field that already
            exists; such a conflict aborts the whole batch.
    """
    data = dict(frontmatter)
    changes: list[FieldChange] = []
    for op in operations:
        change = _apply(data, op)
        if change is not None:
            changes.append(change)
    return data, changes


def _apply(data: dict[str, Any], op: BulkOperation) -> FieldChange | None:
    present = op.field in data
    old = data.get(op.field)

    if op.operation is OperationType.SET:
        if present and old == op.value:
            return None
        data[op.field] = op.value
        return FieldChange(op.operation, op.field, old, op.value)

    if op.operation is OperationType.CLEAR:
        if not present or _is_empty(old):
            return None
        data[op.field] = None
        return FieldChange(op.operation, op.field, old, None)

    if op.operation is OperationType.DELETE:
        if not present:
            return None
        del data[op.field]
        return FieldChange(op.operation, op.field, old, None)

    if op.operation is OperationType.RENAME:
        if not present:
            return None
        assert op.new_field is not None
        if op.new_field in data:
            msg = f"Cannot rename '{op.field}' to '{op.new_field}': target field already exists"
            raise BulkOperationError(msg)
        # Rebuild to keep the renamed key at its original position.
        renamed = {(op.new_field if key == op.field else key): value for key, value in data.items()}
        data.clear()
        data.update(renamed)
        return FieldChange(op.operation, op.field, old, old, new_field=op.new_field)

    if op.operation is OperationType.APPEND:
        if not present or old is None:
            items: list[Any] = []
        elif isinstance(old, list):
            items = list(old)
        else:
            items = [old]
        if op.value in items:
            return None
        new = [*items, op.value]
        data[op.field] = new
        return FieldChange(op.operation, op.field, old, new)

    # REMOVE
    if isinstance(old, list):
        if op.value not in old:
            return None
        new_list = [item for item in old if item != op.value]
        data[op.field] = new_list
        return FieldChange(op.operation, op.field, old, new_list)
    if present and old == op.value:
        data[op.field] = None
        return FieldChange(op.operation, op.field, old, None)
    return None


def describe_operations(operations: Sequence[BulkOperation]) -> str:
    """One-line summary, used in backup manifests."""
    return "bulk " + ", ".join(op.describe() for op in operations)
