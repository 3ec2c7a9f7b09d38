"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, notectl.toml only contains
overrides. A fresh vault needs no config file at all.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

# --- notectl.toml sections ---


class VaultConfig(BaseModel):
    """[vault] section."""

    model_config = {"frozen": True}

    name: str = "my-vault"
    schema_path: str = ".notectl/schema.yaml"
    ignored_directories: list[str] = Field(default_factory=list)


class BulkConfig(BaseModel):
    """[bulk] section."""

    model_config = {"frozen": True}

    backup: bool = True
    backup_dir: str = ".notectl/backups"
    max_preview: int = 50


class TargetingConfig(BaseModel):
    """[targeting] section."""

    model_config = {"frozen": True}

    near_match_limit: int = 5


class DashboardConfig(BaseModel):
    """[dashboards.<name>]: a saved query."""

    model_config = {"frozen": True}

    type: str | None = None
    path: str | None = None
    where: list[str] = Field(default_factory=list)
    body: str | None = None
    fields: list[str] = Field(default_factory=list)
    output: str = "table"
    description: str | None = None

