"""BaseService: foundation for all notectl services.

Every service receives a :class:`Vault` at construction time and loads
the schema at the start of each operation. Domain exceptions are turned
into ``ServiceResult(ok=False)`` here so commands never see a traceback
for a user mistake.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from notectl.domain.errors import (
    BulkOperationError,
    NotectlError,
    SchemaLoadError,
    SchemaResolutionError,
    TargetingError,
    WhereValidationError,
)
from notectl.services import result as codes
from notectl.services.result import ServiceResult

if TYPE_CHECKING:
    from notectl.infrastructure.vault import Vault

logger = logging.getLogger(__name__)

_ERROR_CODES: tuple[tuple[type[NotectlError], str], ...] = (
    (SchemaLoadError, codes.SCHEMA_ERROR),
    (SchemaResolutionError, codes.UNKNOWN_TYPE),
    (WhereValidationError, codes.WHERE_INVALID),
    (TargetingError, codes.NO_TARGETING),
    (BulkOperationError, codes.BULK_CONFLICT),
)


class BaseService:
    """Base for service-layer classes.

    Usage::

        class BulkService(BaseService):
            @traced
            def apply(self, selectors, operations) -> ServiceResult:
                schema = self._vault.load_schema()
                ...
    """

    def __init__(self, vault: Vault) -> None:
        self._vault = vault

    @staticmethod
    def _from_error(op: str, exc: NotectlError, *, warnings: list[str] | None = None) -> ServiceResult:
        """Map a domain exception onto a failed result with a stable code."""
        code = codes.INVALID_OPERATION
        for exc_type, mapped in _ERROR_CODES:
            if isinstance(exc, exc_type):
                code = mapped
                break
        detail: dict[str, object] = {}
        if isinstance(exc, SchemaResolutionError) and exc.type_path:
            detail["type"] = exc.type_path
        logger.debug("%s failed: %s (%s)", op, exc, code)
        return ServiceResult.failure(op, code, str(exc), detail=detail, warnings=warnings)
