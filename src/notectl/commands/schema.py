"""Command group: inspect, validate, and snapshot the vault schema."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from notectl.commands._base import NotectlGroup
from notectl.services.schema import SchemaService

if TYPE_CHECKING:
    from notectl.commands._context import AppContext

_SCHEMA_EXAMPLES = """\
  notectl schema show
  notectl schema show objective/task
  notectl schema validate
  notectl schema status
  notectl schema snapshot"""


@click.group(cls=NotectlGroup, examples=_SCHEMA_EXAMPLES)
@click.pass_obj
def schema(app: AppContext) -> None:
    """Inspect and validate the vault schema."""


@schema.command(
    examples="""\
  notectl schema show
  notectl schema show draft
  notectl --json schema show objective/task"""
)
@click.argument("type_path", required=False)
@click.pass_obj
def show(app: AppContext, type_path: str | None) -> None:
    """Show the type tree, or one resolved TYPE_PATH with its fields."""
    app.emit(SchemaService(app.vault).show(type_path))


@schema.command()
@click.pass_obj
def validate(app: AppContext) -> None:
    """Validate the schema and audit records against it."""
    app.emit(SchemaService(app.vault).validate())


@schema.command()
@click.pass_obj
def status(app: AppContext) -> None:
    """Compare the schema with the last applied snapshot."""
    app.emit(SchemaService(app.vault).status())


@schema.command()
@click.pass_obj
def snapshot(app: AppContext) -> None:
    """Record the current schema as applied."""
    app.emit(SchemaService(app.vault).snapshot())
