"""Type resolver: flattens the inheritable schema into concrete types.

A *type path* is a slash-delimited route through nested discriminated
subtypes (``objective/task``). Each nesting level is tagged in a
record's frontmatter by a *discriminator* field: ``type`` at the root,
``<parent>-type`` below it (``objective-type: task``).

Field precedence for a resolved type is strict:

1. discriminator fields for every level of the path (static);
2. shared fields the type or its lineage opted into, in declared order;
3. own field declarations along the lineage, root first, which may add
   fields or fully replace a same-named shared field;
4. field-attribute overrides, applied only onto opted-in shared fields.

Everything here is a pure function of ``(schema, type_path)``. A
:class:`TypeResolver` memoizes per instance; instances are built once per
operation and passed explicitly, never stored globally.
"""

from __future__ import annotations

import difflib
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from notectl.domain.errors import SchemaResolutionError
from notectl.domain.schema import BodySection, FieldDefinition, Schema, TypeDefinition
from notectl.domain.types import DirMode, InputKind

ROOT_DISCRIMINATOR = "type"


@dataclass(frozen=True)
class OwnershipDeclaration:
    """``owner_type`` exclusively holds ``child_type`` records via ``field_name``."""

    owner_type: str
    field_name: str
    child_type: str


@dataclass(frozen=True)
class ResolvedType:
    """A type with inheritance flattened into a concrete field set."""

    path: str
    name: str
    fields: Mapping[str, FieldDefinition]
    field_order: tuple[str, ...]
    discriminator: str
    child_discriminator: str | None
    child_paths: tuple[str, ...]
    output_dir: str | None
    dir_mode: DirMode
    body_sections: tuple[BodySection, ...]
    ownership: tuple[OwnershipDeclaration, ...]
    lineage: tuple[str, ...]

    @property
    def is_leaf(self) -> bool:
        return not self.child_paths


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


def parse_type_path(type_path: str | None) -> list[str]:
    """Split ``objective/task`` into ``["objective", "task"]``."""
    if not type_path:
        return []
    return [seg for seg in type_path.strip("/").split("/") if seg]


def discriminator_name(parent_path: str | None) -> str:
    """Frontmatter key that selects a subtype beneath *parent_path*.

    ``None`` (and the legacy root marker ``"type"``) yield ``"type"``;
    nested levels use the parent's leaf name: ``objective`` ->
    ``objective-type``.
    """
    segments = parse_type_path(parent_path)
    if not segments or parent_path == ROOT_DISCRIMINATOR:
        return ROOT_DISCRIMINATOR
    return f"{segments[-1]}-type"


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class TypeResolver:
    """Resolve type paths against one schema snapshot."""

    def __init__(self, schema: Schema) -> None:
        self.schema = schema
        self._resolved: dict[str, ResolvedType] = {}

    # -- lookup ------------------------------------------------------------

    def definition(self, type_path: str) -> TypeDefinition | None:
        """Return the raw definition at *type_path*, or None."""
        segments = parse_type_path(type_path)
        if not segments:
            return None
        node = self.schema.types.get(segments[0])
        for seg in segments[1:]:
            if node is None:
                return None
            node = node.subtypes.get(seg)
        return node

    def type_paths(self) -> list[str]:
        """Every type path in the schema, depth-first in declared order."""
        return list(self._walk(self.schema.types, None))

    def _walk(self, types: Mapping[str, TypeDefinition], prefix: str | None) -> Iterator[str]:
        for name, node in types.items():
            path = f"{prefix}/{name}" if prefix else name
            yield path
            yield from self._walk(node.subtypes, path)

    def leaf_paths(self, type_path: str) -> list[str]:
        """Leaf descendants of *type_path* (itself if already a leaf)."""
        node = self.definition(type_path)
        if node is None:
            return []
        if not node.has_subtypes:
            return [type_path]
        leaves: list[str] = []
        for child in node.subtypes:
            leaves.extend(self.leaf_paths(f"{type_path}/{child}"))
        return leaves

    def close_type_matches(self, type_path: str, *, limit: int = 5) -> list[str]:
        """Known type paths that look like *type_path* (for diagnostics)."""
        paths = self.type_paths()
        by_leaf = [p for p in paths if p.rsplit("/", 1)[-1] == type_path]
        fuzzy = difflib.get_close_matches(type_path, paths, n=limit, cutoff=0.5)
        return list(dict.fromkeys(by_leaf + fuzzy))[:limit]

    # -- lineage -----------------------------------------------------------

    def lineage(self, type_path: str) -> list[tuple[str, TypeDefinition]]:
        """Ancestors of *type_path* root-first, ending with the type itself.

        Includes nesting ancestors and each node's ``extends`` chain.

        Raises:
            SchemaResolutionError: If the path or an ``extends`` target is
                unknown, or the ``extends`` chain is cyclic.
        """
        ordered: dict[str, TypeDefinition] = {}
        self._collect_lineage(type_path, ordered, stack=())
        return list(ordered.items())

    def _collect_lineage(
        self,
        type_path: str,
        ordered: dict[str, TypeDefinition],
        stack: tuple[str, ...],
    ) -> None:
        if type_path in stack:
            chain = " -> ".join((*stack, type_path))
            msg = f"Cyclic inheritance: {chain}"
            raise SchemaResolutionError(msg, type_path=type_path)
        node = self.definition(type_path)
        if node is None:
            msg = f"Unknown type: '{type_path}'"
            raise SchemaResolutionError(msg, type_path=type_path)

        stack = (*stack, type_path)
        segments = parse_type_path(type_path)
        if len(segments) > 1:
            self._collect_lineage("/".join(segments[:-1]), ordered, stack)
        if node.extends:
            self._collect_lineage(node.extends, ordered, stack)
        ordered.setdefault(type_path, node)

    # -- fields ------------------------------------------------------------

    def fields_for(self, type_path: str) -> dict[str, FieldDefinition]:
        """Flattened field map for *type_path* (see module docstring).

        Raises:
            SchemaResolutionError: If the type is unknown, opts into an
                undeclared shared field, or overrides a non-shared field.
        """
        lineage = self.lineage(type_path)
        fields: dict[str, FieldDefinition] = {}

        # Discriminators tag every nesting level of the path.
        discriminators: dict[str, FieldDefinition] = {}
        segments = parse_type_path(type_path)
        for i, seg in enumerate(segments):
            parent = "/".join(segments[:i]) or None
            discriminators[discriminator_name(parent)] = FieldDefinition(
                prompt=InputKind.STATIC, value=seg, required=True
            )
        fields.update(discriminators)

        # (1) opted-in shared fields
        shared_names: list[str] = []
        for _path, node in lineage:
            for name in node.shared_fields:
                if name not in shared_names:
                    shared_names.append(name)
        for name in shared_names:
            shared = self.schema.shared_fields.get(name)
            if shared is None:
                msg = f"Type '{type_path}' opts into unknown shared field '{name}'"
                raise SchemaResolutionError(msg, type_path=type_path)
            fields[name] = shared

        # (2) own declarations, descendants win
        for _path, node in lineage:
            fields.update(node.fields)

        # (3) attribute overrides, shared fields only
        for path, node in lineage:
            for name, override in node.field_overrides.items():
                if name not in shared_names:
                    msg = (
                        f"Type '{path}' overrides '{name}', which is not an "
                        f"opted-in shared field"
                    )
                    raise SchemaResolutionError(msg, type_path=type_path)
                fields[name] = override.apply(fields[name])

        fields.update(discriminators)
        return fields

    def all_fields_for(self, type_path: str) -> list[str]:
        """Field names of *type_path* and all of its descendants."""
        names: dict[str, None] = {}
        for path in [type_path, *self._descendants(type_path)]:
            names.update(dict.fromkeys(self.fields_for(path)))
        return list(names)

    def _descendants(self, type_path: str) -> list[str]:
        node = self.definition(type_path)
        if node is None:
            return []
        return list(self._walk(node.subtypes, type_path))

    def ordered_field_names(self, type_path: str) -> list[str]:
        """Frontmatter order: explicit ``frontmatter_order`` first, then the rest."""
        fields = self.fields_for(type_path)
        explicit: list[str] = []
        for _path, node in self.lineage(type_path):
            if node.frontmatter_order is not None:
                explicit = list(node.frontmatter_order)
        ordered = [name for name in explicit if name in fields]
        ordered.extend(name for name in fields if name not in ordered)
        return ordered

    def enum_values(self, enum_name: str) -> list[str]:
        return list(self.schema.enums.get(enum_name, []))

    def field_choices(self, field: FieldDefinition) -> list[str] | None:
        """Allowed values of a select field, or None for free-form fields."""
        if field.options is not None:
            return list(field.options)
        if field.enum is not None:
            return self.enum_values(field.enum)
        return None

    # -- resolve -----------------------------------------------------------

    def resolve(self, type_path: str) -> ResolvedType | None:
        """Resolve *type_path*; None when the path does not exist."""
        normalized = "/".join(parse_type_path(type_path))
        if normalized in self._resolved:
            return self._resolved[normalized]
        node = self.definition(normalized)
        if node is None:
            return None

        lineage = self.lineage(normalized)
        fields = self.fields_for(normalized)
        segments = parse_type_path(normalized)
        parent = "/".join(segments[:-1]) or None

        resolved = ResolvedType(
            path=normalized,
            name=segments[-1],
            fields=fields,
            field_order=tuple(self.ordered_field_names(normalized)),
            discriminator=discriminator_name(parent),
            child_discriminator=discriminator_name(normalized) if node.subtypes else None,
            child_paths=tuple(f"{normalized}/{child}" for child in node.subtypes),
            output_dir=_inherited(lineage, "output_dir"),
            dir_mode=_inherited(lineage, "dir_mode") or DirMode.POOLED,
            body_sections=tuple(_inherited(lineage, "body_sections") or ()),
            ownership=tuple(
                OwnershipDeclaration(normalized, name, fd.owns)
                for name, fd in fields.items()
                if fd.owns
            ),
            lineage=tuple(path for path, _node in lineage),
        )
        self._resolved[normalized] = resolved
        return resolved

    def require(self, type_path: str) -> ResolvedType:
        """Like :meth:`resolve` but raises for unknown paths."""
        resolved = self.resolve(type_path)
        if resolved is None:
            msg = f"Unknown type: '{type_path}'"
            suggestions = self.close_type_matches(type_path)
            if suggestions:
                msg += f". Did you mean: {', '.join(suggestions)}?"
            raise SchemaResolutionError(msg, type_path=type_path)
        return resolved

    def resolve_type_path_from_frontmatter(self, attrs: Mapping[str, Any]) -> str | None:
        """Walk discriminators from the root to find a record's type path.

        Returns the accumulated path once a leaf is reached, or when a
        nested discriminator is absent (``{"type": "objective"}`` ->
        ``objective``). Returns None when the root discriminator is
        missing or any present discriminator names an unknown subtype.
        """
        root_value = attrs.get(ROOT_DISCRIMINATOR)
        if root_value in (None, ""):
            return None
        path = str(root_value)
        node = self.schema.types.get(path)
        if node is None:
            return None

        while node.subtypes:
            value = attrs.get(discriminator_name(path))
            if value in (None, ""):
                return path
            child = node.subtypes.get(str(value))
            if child is None:
                return None
            path = f"{path}/{value}"
            node = child
        return path

    # -- ownership ---------------------------------------------------------

    def ownership_declarations(self) -> list[OwnershipDeclaration]:
        """Every ``(owner, field, child)`` declaration in the schema."""
        declarations: list[OwnershipDeclaration] = []
        for path in self.type_paths():
            resolved = self.resolve(path)
            if resolved is not None:
                declarations.extend(resolved.ownership)
        return declarations

    def owner_types_of(self, child_type: str) -> list[OwnershipDeclaration]:
        """Declarations under which *child_type* records can be owned."""
        leaf = parse_type_path(child_type)[-1] if child_type else child_type
        return [d for d in self.ownership_declarations() if d.child_type in (child_type, leaf)]

    def can_be_owned(self, child_type: str) -> bool:
        return bool(self.owner_types_of(child_type))


def _inherited(lineage: list[tuple[str, TypeDefinition]], attr: str) -> Any:
    """Most specific explicitly-set value of *attr* along *lineage*."""
    value: Any = None
    for _path, node in lineage:
        if attr in node.model_fields_set:
            value = getattr(node, attr)
    return value


# ---------------------------------------------------------------------------
# Functional facade
# ---------------------------------------------------------------------------


def resolve(schema: Schema, type_path: str) -> ResolvedType | None:
    """Resolve *type_path* against *schema* (None means not found)."""
    return TypeResolver(schema).resolve(type_path)


def fields_for(schema: Schema, type_path: str) -> dict[str, FieldDefinition]:
    """Flattened field map for *type_path*."""
    return TypeResolver(schema).fields_for(type_path)


def resolve_type_path_from_frontmatter(schema: Schema, attrs: Mapping[str, Any]) -> str | None:
    """Type path a record's discriminators point to, or None."""
    return TypeResolver(schema).resolve_type_path_from_frontmatter(attrs)
