"""Command: list records matching selectors."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from notectl.commands._base import NotectlCommand
from notectl.commands._selectors import build_selectors, selector_options
from notectl.services.query import QueryService

if TYPE_CHECKING:
    from notectl.commands._context import AppContext


@click.command(
    "list",
    cls=NotectlCommand,
    examples="""\
  notectl list
  notectl list --type objective/task
  notectl list -t idea -w "status = active" -f status -f tags
  notectl list --path "Projects/**" --where "file.mtime > 2025-01-01"
  notectl --json list --body "retro" """,
)
@selector_options
@click.option(
    "-f",
    "--field",
    "--fields",
    "fields",
    multiple=True,
    help="Frontmatter field to show (repeatable).",
)
@click.pass_obj
def list_cmd(
    app: AppContext,
    type_path: str | None,
    path_glob: str | None,
    where: tuple[str, ...],
    record_id: str | None,
    body_query: str | None,
    fields: tuple[str, ...],
) -> None:
    """List managed records (every record when no selector is given)."""
    selectors = build_selectors(
        type_path=type_path,
        path_glob=path_glob,
        where=where,
        record_id=record_id,
        body_query=body_query,
    )
    app.emit(QueryService(app.vault).list_records(selectors, fields=list(fields) or None))
