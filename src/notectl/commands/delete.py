"""Command: delete targeted records under the two-gate model."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from notectl.commands._base import NotectlCommand
from notectl.commands._selectors import build_selectors, mutation_options
from notectl.services.delete import DeleteService

if TYPE_CHECKING:
    from notectl.commands._context import AppContext


@click.command(
    cls=NotectlCommand,
    examples="""\
  notectl delete -t idea -w "status = archived"
  notectl delete --id stale-idea --execute
  notectl delete -p "Drafts/old-essay/**" -x --no-backup""",
)
@mutation_options
@click.option("--no-backup", is_flag=True, help="Skip the backup before deleting.")
@click.pass_obj
def delete(
    app: AppContext,
    type_path: str | None,
    path_glob: str | None,
    where: tuple[str, ...],
    record_id: str | None,
    body_query: str | None,
    select_all: bool,
    execute: bool,
    dry_run: bool,
    no_backup: bool,
) -> None:
    """Delete targeted records (preview unless --execute)."""
    selectors = build_selectors(
        type_path=type_path,
        path_glob=path_glob,
        where=where,
        record_id=record_id,
        body_query=body_query,
        select_all=select_all,
        execute=execute,
        dry_run=dry_run,
    )
    backup = False if no_backup else None
    app.emit(DeleteService(app.vault).delete(selectors, backup=backup))
