"""Vault: the per-invocation handle every service receives.

Holds the vault root and settings. The schema is re-read from disk on
each :meth:`Vault.load_schema` call, and services call it once at the
start of an operation; no parsed schema outlives that operation.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from notectl.domain.resolver import TypeResolver
from notectl.domain.schema import Schema
from notectl.infrastructure.schema_loader import load_schema, schema_path_for

if TYPE_CHECKING:
    from notectl.config.settings import NotectlSettings

logger = logging.getLogger(__name__)


class Vault:
    """Vault root, settings, and schema access for one CLI invocation."""

    def __init__(self, settings: NotectlSettings) -> None:
        self._settings = settings

    @property
    def root(self) -> Path:
        return self._settings.vault_root

    @property
    def settings(self) -> NotectlSettings:
        return self._settings

    @property
    def schema_file(self) -> Path:
        return schema_path_for(self.root, self._settings.vault.schema_path)

    def load_schema(self) -> Schema:
        """Read and validate the schema document.

        Raises:
            SchemaLoadError: If the document is missing or invalid.
        """
        schema = load_schema(self.schema_file)
        logger.debug("schema loaded: %d root types", len(schema.types))
        return schema

    def resolver(self, schema: Schema) -> TypeResolver:
        """A fresh resolver bound to *schema*."""
        return TypeResolver(schema)

    def ignored_directories(self, schema: Schema) -> list[str]:
        """Config and schema ignore lists combined, deduplicated."""
        combined = [*self._settings.vault.ignored_directories, *schema.audit.ignored_directories]
        return list(dict.fromkeys(combined))
