"""ServiceResult and ServiceError: the universal service contract.

INVARIANT: every service-layer method returns a ServiceResult. User
mistakes surface as ``ok=False`` with a stable error code, never as an
exception escaping to the CLI.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

# Stable error codes (part of the JSON output contract).
SCHEMA_ERROR = "SCHEMA_ERROR"
UNKNOWN_TYPE = "UNKNOWN_TYPE"
WHERE_INVALID = "WHERE_INVALID"
NO_TARGETING = "NO_TARGETING"
OWNERSHIP_VIOLATION = "OWNERSHIP_VIOLATION"
BULK_CONFLICT = "BULK_CONFLICT"
NOT_FOUND = "NOT_FOUND"
INVALID_OPERATION = "INVALID_OPERATION"


class ServiceError(BaseModel):
    """Structured error payload within a ServiceResult."""

    model_config = {"frozen": True}

    code: str
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Universal return type for all service operations.

    Attributes:
        ok: Whether the operation succeeded.
        op: Name of the operation (e.g. ``"bulk"``).
        data: Operation-specific payload on success.
        warnings: Non-fatal issues (unparsable records, skipped files).
        error: Structured error if ``ok`` is False.
        meta: Optional metadata (telemetry spans).
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None

    @classmethod
    def failure(
        cls,
        op: str,
        code: str,
        message: str,
        *,
        detail: dict[str, Any] | None = None,
        warnings: list[str] | None = None,
    ) -> ServiceResult:
        return cls(
            ok=False,
            op=op,
            error=ServiceError(code=code, message=message, detail=detail or {}),
            warnings=warnings or [],
        )
