"""Error taxonomy for the notectl core.

Domain and infrastructure code raise these; services translate them
into ``ServiceResult(ok=False, error=ServiceError(...))`` so the CLI
never shows a traceback for a user mistake.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal


class NotectlError(Exception):
    """Base class for all notectl errors."""


class SchemaLoadError(NotectlError):
    """The schema document is malformed (fatal at load time)."""


class SchemaResolutionError(NotectlError):
    """A type path or discriminator could not be resolved."""

    def __init__(self, message: str, *, type_path: str | None = None) -> None:
        super().__init__(message)
        self.type_path = type_path


class WhereValidationError(NotectlError):
    """A where-expression references an unknown field or is malformed."""


class ExpressionSyntaxError(WhereValidationError):
    """A where-expression could not be parsed."""

    def __init__(self, message: str, *, expression: str, position: int | None = None) -> None:
        location = f" at position {position}" if position is not None else ""
        super().__init__(f"{message}{location} in expression: {expression}")
        self.expression = expression
        self.position = position


class TargetingError(NotectlError):
    """No explicit selector was given and ``--all`` was not passed."""


class BulkOperationError(NotectlError):
    """A class-level conflict that aborts a whole bulk batch before writes."""


OwnershipViolationKind = Literal["already_owned", "referencing_owned"]


@dataclass(frozen=True)
class OwnershipViolation:
    """One exclusivity violation found by the ownership validator."""

    kind: OwnershipViolationKind
    record_path: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "record_path": self.record_path,
            "message": self.message,
            "details": dict(self.details),
        }


class FrontmatterError(NotectlError):
    """A record's YAML frontmatter could not be parsed."""
