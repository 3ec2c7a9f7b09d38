"""Load and validate the vault schema document.

The schema lives at ``.notectl/schema.yaml`` (or ``.json``). Loading is
the only point where structural mistakes are reported: once
:func:`load_schema` returns, every type path in the schema resolves.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import networkx as nx
from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from notectl.domain.errors import SchemaLoadError, SchemaResolutionError
from notectl.domain.resolver import TypeResolver, parse_type_path
from notectl.domain.schema import FieldDefinition, Schema

logger = logging.getLogger(__name__)


def load_schema(path: Path) -> Schema:
    """Read, parse, and validate the schema document at *path*.

    Raises:
        SchemaLoadError: If the file is missing, unparsable, or
            structurally invalid.
    """
    if not path.is_file():
        msg = f"Schema not found: {path}"
        raise SchemaLoadError(msg)
    raw = path.read_text(encoding="utf-8")
    try:
        if path.suffix == ".json":
            data = json.loads(raw)
        else:
            data = YAML(typ="safe").load(raw)
    except (json.JSONDecodeError, YAMLError) as exc:
        msg = f"Invalid schema document {path}: {exc}"
        raise SchemaLoadError(msg) from exc
    logger.debug("Loaded schema document %s", path)
    return parse_schema(data or {})


def parse_schema(data: Mapping[str, Any]) -> Schema:
    """Validate a raw schema mapping into a :class:`Schema`.

    Raises:
        SchemaLoadError: On any structural problem.
    """
    if not isinstance(data, Mapping):
        msg = "Schema document must be a mapping"
        raise SchemaLoadError(msg)
    try:
        schema = Schema.model_validate(dict(data))
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        msg = f"Invalid schema: {problems}"
        raise SchemaLoadError(msg) from exc
    check_schema(schema)
    return schema


def check_schema(schema: Schema) -> None:
    """Structural checks pydantic cannot express.

    Raises:
        SchemaLoadError: Naming the first offending type or field.
    """
    resolver = TypeResolver(schema)
    paths = resolver.type_paths()

    for name, field in schema.shared_fields.items():
        if field.owns:
            msg = f"Shared field '{name}' cannot declare ownership"
            raise SchemaLoadError(msg)

    _check_enums(schema, resolver, paths)
    _check_extends(resolver, paths)

    for path in paths:
        node = resolver.definition(path)
        assert node is not None
        for name in node.shared_fields:
            if name not in schema.shared_fields:
                msg = f"Type '{path}' opts into unknown shared field '{name}'"
                raise SchemaLoadError(msg)
        try:
            fields = resolver.fields_for(path)
        except SchemaResolutionError as exc:
            raise SchemaLoadError(str(exc)) from exc

        lineage = resolver.lineage(path)
        shared_names = {n for _p, lineage_node in lineage for n in lineage_node.shared_fields}
        own_fields = {n: f for _p, lineage_node in lineage for n, f in lineage_node.fields.items()}
        for name, own in own_fields.items():
            shared = schema.shared_fields.get(name)
            if name in shared_names and shared is not None and own.prompt != shared.prompt:
                msg = (
                    f"Type '{path}' redefines shared field '{name}' as "
                    f"'{own.prompt}' (shared kind is '{shared.prompt}')"
                )
                raise SchemaLoadError(msg)
        for name, field in fields.items():
            if field.owns and not _type_exists(paths, field.owns):
                msg = f"Field '{name}' on type '{path}' owns unknown type '{field.owns}'"
                raise SchemaLoadError(msg)


def _type_exists(paths: list[str], target: str) -> bool:
    leaf = parse_type_path(target)[-1] if target else target
    return target in paths or any(p.rsplit("/", 1)[-1] == leaf for p in paths)


def _check_enums(schema: Schema, resolver: TypeResolver, paths: list[str]) -> None:
    def check(owner: str, name: str, field: FieldDefinition) -> None:
        if field.enum is not None and field.enum not in schema.enums:
            msg = f"Field '{name}' on {owner} references unknown enum '{field.enum}'"
            raise SchemaLoadError(msg)

    for name, field in schema.shared_fields.items():
        check("shared_fields", name, field)
    for path in paths:
        node = resolver.definition(path)
        assert node is not None
        for name, field in node.fields.items():
            check(f"type '{path}'", name, field)


def _check_extends(resolver: TypeResolver, paths: list[str]) -> None:
    graph = nx.DiGraph()
    graph.add_nodes_from(paths)
    for path in paths:
        node = resolver.definition(path)
        assert node is not None
        segments = parse_type_path(path)
        if len(segments) > 1:
            graph.add_edge(path, "/".join(segments[:-1]))
        if node.extends is None:
            continue
        if resolver.definition(node.extends) is None:
            msg = f"Type '{path}' extends unknown type '{node.extends}'"
            raise SchemaLoadError(msg)
        graph.add_edge(path, "/".join(parse_type_path(node.extends)))
    try:
        cycle = nx.find_cycle(graph)
    except nx.NetworkXNoCycle:
        return
    chain = " -> ".join(edge[0] for edge in cycle) + f" -> {cycle[-1][1]}"
    msg = f"Cyclic inheritance: {chain}"
    raise SchemaLoadError(msg)


def schema_path_for(vault_root: Path, configured: str) -> Path:
    """Resolve the configured schema location, falling back to ``.json``."""
    path = vault_root / configured
    if not path.exists() and path.suffix in (".yaml", ".yml"):
        alternative = path.with_suffix(".json")
        if alternative.exists():
            return alternative
    return path
