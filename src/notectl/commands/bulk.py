"""Command: bulk frontmatter edits under the two-gate model."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from notectl.commands._base import NotectlCommand
from notectl.commands._selectors import build_selectors, mutation_options
from notectl.domain.bulk import build_operations
from notectl.domain.errors import BulkOperationError
from notectl.services import result as codes
from notectl.services.bulk import BulkService
from notectl.services.result import ServiceResult

if TYPE_CHECKING:
    from notectl.commands._context import AppContext


@click.command(
    cls=NotectlCommand,
    examples="""\
  notectl bulk -t objective/task --set status=done
  notectl bulk -t objective/task -w "status = active" --set status=done --execute
  notectl bulk -p Ideas --rename category=area --execute
  notectl bulk -t idea --append tags=review --limit 10
  notectl bulk --all --delete legacy_id -x""",
)
@mutation_options
@click.option("--set", "set_", multiple=True, metavar="FIELD=VALUE", help="Set a field.")
@click.option("--clear", multiple=True, metavar="FIELD", help="Set a field to empty.")
@click.option("--rename", multiple=True, metavar="OLD=NEW", help="Rename a field.")
@click.option("--delete", "delete_", multiple=True, metavar="FIELD", help="Remove a field.")
@click.option("--append", multiple=True, metavar="FIELD=VALUE", help="Append to a list field.")
@click.option("--remove", multiple=True, metavar="FIELD=VALUE", help="Remove from a list field.")
@click.option("--limit", type=click.IntRange(min=1), default=None, help="Affect at most N records.")
@click.option("--no-backup", is_flag=True, help="Skip the backup before executing.")
@click.pass_obj
def bulk(
    app: AppContext,
    type_path: str | None,
    path_glob: str | None,
    where: tuple[str, ...],
    record_id: str | None,
    body_query: str | None,
    select_all: bool,
    execute: bool,
    dry_run: bool,
    set_: tuple[str, ...],
    clear: tuple[str, ...],
    rename: tuple[str, ...],
    delete_: tuple[str, ...],
    append: tuple[str, ...],
    remove: tuple[str, ...],
    limit: int | None,
    no_backup: bool,
) -> None:
    """Edit frontmatter across targeted records (preview unless --execute).

    Operations apply in a fixed order, not command-line order: set, clear,
    rename, delete, append, remove. Repeats of one option keep their order.
    """
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
    try:
        operations = build_operations(
            set_=set_,
            clear=clear,
            rename=rename,
            delete=delete_,
            append=append,
            remove=remove,
        )
    except BulkOperationError as exc:
        app.emit(ServiceResult.failure("bulk", codes.INVALID_OPERATION, str(exc)))
        return
    backup = False if no_backup else None
    app.emit(BulkService(app.vault).apply(selectors, operations, limit=limit, backup=backup))
