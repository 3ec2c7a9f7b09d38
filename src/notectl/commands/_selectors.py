"""Shared targeting options for record-selecting commands."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import click

from notectl.services.targeting import SelectorSet

_SELECTOR_OPTIONS = (
    click.option("-t", "--type", "type_path", default=None, help="Schema type path (e.g. objective/task)."),
    click.option("-p", "--path", "path_glob", default=None, help="Vault-relative folder or glob."),
    click.option(
        "-w",
        "--where",
        "where",
        multiple=True,
        help="Filter expression; repeat to AND several.",
    ),
    click.option("--id", "record_id", default=None, help="Frontmatter id or file name."),
    click.option("-b", "--body", "body_query", default=None, help="Case-insensitive body text match."),
)

_MUTATION_OPTIONS = (
    click.option("-a", "--all", "select_all", is_flag=True, help="Select every managed record."),
    click.option("-x", "--execute", is_flag=True, help="Apply changes (default is a preview)."),
    click.option("--dry-run", is_flag=True, help="Preview only (the default)."),
)

F = TypeVar("F", bound=Callable[..., Any])


def selector_options(func: F) -> F:
    """Add the read-only selector options to a command."""
    for option in reversed(_SELECTOR_OPTIONS):
        func = option(func)
    return func


def mutation_options(func: F) -> F:
    """Add selector options plus the ``--all`` and execute gates."""
    for option in reversed(_MUTATION_OPTIONS):
        func = option(func)
    return selector_options(func)


def build_selectors(
    *,
    type_path: str | None = None,
    path_glob: str | None = None,
    where: tuple[str, ...] = (),
    record_id: str | None = None,
    body_query: str | None = None,
    select_all: bool = False,
    execute: bool = False,
    dry_run: bool = False,
) -> SelectorSet:
    """Collect option values into a SelectorSet.

    Raises:
        click.UsageError: If ``--execute`` and ``--dry-run`` are combined.
    """
    if execute and dry_run:
        raise click.UsageError("--execute and --dry-run are mutually exclusive.")
    return SelectorSet(
        type_path=type_path,
        path_glob=path_glob,
        where=tuple(where),
        record_id=record_id,
        body_query=body_query,
        select_all=select_all,
        execute=execute,
    )
