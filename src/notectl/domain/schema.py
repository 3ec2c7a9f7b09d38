"""Schema document models.

The schema is authored as YAML (or JSON) in ``.notectl/schema.yaml``
and validated into these frozen pydantic models by
:mod:`notectl.infrastructure.schema_loader`. Models describe the schema
as written; flattening inheritance into concrete field sets is the job
of :mod:`notectl.domain.resolver`.

Example::

    enums:
      status: [raw, backlog, in-flight, settled]
    shared_fields:
      status: {prompt: select, enum: status, default: raw}
    types:
      idea:
        output_dir: Ideas
        shared_fields: [status]
      draft:
        output_dir: Drafts
        dir_mode: instance-grouped
        fields:
          ideas: {prompt: list, format: wikilink, owns: idea}
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from notectl.domain.types import DirMode, InputKind, LinkFormat


class FieldDefinition(BaseModel):
    """One frontmatter field declaration."""

    model_config = {"frozen": True, "extra": "forbid"}

    prompt: InputKind = InputKind.TEXT
    value: Any = None
    default: Any = None
    required: bool = False
    enum: str | None = None
    options: list[str] | None = None
    format: LinkFormat = LinkFormat.PLAIN
    owns: str | None = None
    description: str | None = None


class FieldOverride(BaseModel):
    """Attribute-only adjustment of an opted-in shared field."""

    model_config = {"frozen": True, "extra": "forbid"}

    default: Any = None
    required: bool | None = None
    options: list[str] | None = None

    def apply(self, field: FieldDefinition) -> FieldDefinition:
        """Return *field* with the explicitly set override attributes applied."""
        update = self.model_dump(exclude_unset=True)
        return field.model_copy(update=update)


class BodySection(BaseModel):
    """A body section template (heading plus optional placeholder content)."""

    model_config = {"frozen": True, "extra": "forbid"}

    title: str
    level: int = 2
    content_type: str = "none"


class TypeDefinition(BaseModel):
    """A schema-authored record type, possibly with discriminated subtypes."""

    model_config = {"frozen": True, "extra": "forbid"}

    extends: str | None = None
    fields: dict[str, FieldDefinition] = Field(default_factory=dict)
    shared_fields: list[str] = Field(default_factory=list)
    field_overrides: dict[str, FieldOverride] = Field(default_factory=dict)
    subtypes: dict[str, TypeDefinition] = Field(default_factory=dict)
    output_dir: str | None = None
    dir_mode: DirMode = DirMode.POOLED
    frontmatter_order: list[str] | None = None
    body_sections: list[BodySection] = Field(default_factory=list)
    plural: str | None = None

    @property
    def has_subtypes(self) -> bool:
        return bool(self.subtypes)


class AuditConfig(BaseModel):
    """Vault-scan settings carried by the schema document."""

    model_config = {"frozen": True, "extra": "forbid"}

    ignored_directories: list[str] = Field(default_factory=list)
    allowed_extra_fields: list[str] = Field(default_factory=list)


class Schema(BaseModel):
    """Root schema document."""

    model_config = {"frozen": True, "extra": "ignore"}

    version: int = 1
    schema_version: str | None = None
    enums: dict[str, list[str]] = Field(default_factory=dict)
    shared_fields: dict[str, FieldDefinition] = Field(default_factory=dict)
    types: dict[str, TypeDefinition] = Field(default_factory=dict)
    audit: AuditConfig = Field(default_factory=AuditConfig)


TypeDefinition.model_rebuild()
