"""Tests for TypeResolver: lineage, field precedence, discriminators."""

from __future__ import annotations

from typing import Any

import pytest

from notectl.domain.errors import SchemaResolutionError
from notectl.domain.resolver import (
    OwnershipDeclaration,
    TypeResolver,
    discriminator_name,
    fields_for,
    parse_type_path,
    resolve,
    resolve_type_path_from_frontmatter,
)
from notectl.domain.schema import Schema
from notectl.domain.types import DirMode, InputKind


def _schema(**data: Any) -> Schema:
    return Schema.model_validate(data)


class TestPathHelpers:
    def test_parse_type_path(self) -> None:
        assert parse_type_path("objective/task") == ["objective", "task"]
        assert parse_type_path("/idea/") == ["idea"]
        assert parse_type_path(None) == []

    def test_discriminator_names(self) -> None:
        assert discriminator_name(None) == "type"
        assert discriminator_name("type") == "type"
        assert discriminator_name("objective") == "objective-type"
        assert discriminator_name("objective/task") == "task-type"


class TestFieldsFor:
    def test_precedence_order(self, schema: Schema) -> None:
        fields = TypeResolver(schema).fields_for("idea")
        assert list(fields) == ["type", "status", "tags", "title"]

    def test_discriminator_is_static(self, schema: Schema) -> None:
        fields = fields_for(schema, "objective/task")
        assert fields["type"].prompt == InputKind.STATIC
        assert fields["type"].value == "objective"
        assert fields["objective-type"].value == "task"
        assert fields["objective-type"].required is True

    def test_nested_type_inherits_parent_fields(self, schema: Schema) -> None:
        fields = fields_for(schema, "objective/task")
        assert {"status", "priority", "due"} <= set(fields)

    def test_override_applies_to_shared_field(self, schema: Schema) -> None:
        resolver = TypeResolver(schema)
        assert resolver.fields_for("objective/milestone")["status"].default == "active"
        assert resolver.fields_for("objective/task")["status"].default == "raw"
        # Unset override attributes keep the shared definition's values.
        assert resolver.fields_for("objective/milestone")["status"].enum == "status"

    def test_override_of_non_shared_field_raises(self) -> None:
        schema = _schema(
            types={"note": {"fields": {"title": {}}, "field_overrides": {"title": {"required": True}}}}
        )
        with pytest.raises(SchemaResolutionError, match="not an opted-in shared field"):
            TypeResolver(schema).fields_for("note")

    def test_own_field_replaces_shared(self) -> None:
        schema = _schema(
            shared_fields={"status": {"prompt": "select", "options": ["a", "b"]}},
            types={
                "note": {
                    "shared_fields": ["status"],
                    "fields": {"status": {"prompt": "select", "options": ["x"]}},
                }
            },
        )
        assert TypeResolver(schema).fields_for("note")["status"].options == ["x"]

    def test_unknown_shared_opt_in_raises(self) -> None:
        schema = _schema(types={"note": {"shared_fields": ["missing"]}})
        with pytest.raises(SchemaResolutionError, match="unknown shared field"):
            TypeResolver(schema).fields_for("note")

    def test_extends_pulls_in_base_fields(self) -> None:
        schema = _schema(
            types={
                "base": {"fields": {"a": {}}},
                "child": {"extends": "base", "fields": {"b": {}}},
            }
        )
        resolver = TypeResolver(schema)
        assert {"a", "b"} <= set(resolver.fields_for("child"))
        assert [path for path, _node in resolver.lineage("child")] == ["base", "child"]

    def test_extends_cycle_raises(self) -> None:
        schema = _schema(
            types={"a": {"extends": "b"}, "b": {"extends": "a"}},
        )
        with pytest.raises(SchemaResolutionError, match="Cyclic inheritance"):
            TypeResolver(schema).fields_for("a")

    def test_unknown_type_raises(self, schema: Schema) -> None:
        with pytest.raises(SchemaResolutionError) as exc_info:
            TypeResolver(schema).fields_for("nope")
        assert exc_info.value.type_path == "nope"

    def test_all_fields_for_includes_descendants(self, schema: Schema) -> None:
        names = TypeResolver(schema).all_fields_for("objective")
        assert "due" in names
        assert "objective-type" in names
        assert "priority" in names

    def test_frontmatter_order(self) -> None:
        schema = _schema(
            types={"note": {"fields": {"a": {}, "b": {}, "c": {}}, "frontmatter_order": ["c", "type"]}}
        )
        assert TypeResolver(schema).ordered_field_names("note") == ["c", "type", "a", "b"]

    def test_field_choices(self, schema: Schema) -> None:
        resolver = TypeResolver(schema)
        fields = resolver.fields_for("objective/task")
        assert resolver.field_choices(fields["status"]) == ["raw", "active", "done"]
        assert resolver.field_choices(fields["priority"]) == ["low", "high"]
        assert resolver.field_choices(fields["due"]) is None


class TestResolve:
    def test_resolve_parent(self, schema: Schema) -> None:
        resolved = resolve(schema, "objective")
        assert resolved is not None
        assert resolved.discriminator == "type"
        assert resolved.child_discriminator == "objective-type"
        assert resolved.child_paths == ("objective/task", "objective/milestone")
        assert resolved.is_leaf is False

    def test_resolve_leaf(self, schema: Schema) -> None:
        resolved = resolve(schema, "objective/task")
        assert resolved is not None
        assert resolved.name == "task"
        assert resolved.discriminator == "objective-type"
        assert resolved.output_dir == "Objectives/Tasks"
        assert resolved.is_leaf is True
        assert resolved.lineage == ("objective", "objective/task")

    def test_dir_mode(self, schema: Schema) -> None:
        resolved = resolve(schema, "draft")
        assert resolved is not None
        assert resolved.dir_mode is DirMode.INSTANCE_GROUPED

    def test_unknown_returns_none(self, schema: Schema) -> None:
        assert resolve(schema, "nope") is None
        assert resolve(schema, "objective/nope") is None

    def test_resolve_is_memoized(self, schema: Schema) -> None:
        resolver = TypeResolver(schema)
        assert resolver.resolve("idea") is resolver.resolve("idea")

    def test_require_suggests_by_leaf_name(self, schema: Schema) -> None:
        with pytest.raises(SchemaResolutionError, match="objective/task"):
            TypeResolver(schema).require("task")

    def test_leaf_paths(self, schema: Schema) -> None:
        resolver = TypeResolver(schema)
        assert resolver.leaf_paths("objective") == ["objective/task", "objective/milestone"]
        assert resolver.leaf_paths("idea") == ["idea"]
        assert resolver.leaf_paths("nope") == []


class TestResolveFromFrontmatter:
    @pytest.mark.parametrize(
        ("attrs", "expected"),
        [
            ({"type": "objective", "objective-type": "task"}, "objective/task"),
            ({"type": "idea"}, "idea"),
            ({"type": "objective"}, "objective"),
            ({"type": "objective", "objective-type": ""}, "objective"),
            ({"type": "objective", "objective-type": "nope"}, None),
            ({"type": "unknown"}, None),
            ({}, None),
        ],
    )
    def test_walks_discriminators(
        self, schema: Schema, attrs: dict[str, Any], expected: str | None
    ) -> None:
        assert resolve_type_path_from_frontmatter(schema, attrs) == expected


class TestOwnership:
    def test_declarations(self, schema: Schema) -> None:
        resolver = TypeResolver(schema)
        assert resolver.ownership_declarations() == [OwnershipDeclaration("draft", "ideas", "idea")]

    def test_owner_types_of(self, schema: Schema) -> None:
        resolver = TypeResolver(schema)
        assert [d.owner_type for d in resolver.owner_types_of("idea")] == ["draft"]
        assert resolver.can_be_owned("idea") is True
        assert resolver.can_be_owned("objective/task") is False
