"""Command: run a saved query from ``[dashboards.<name>]``."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from notectl.commands._base import NotectlCommand
from notectl.services.query import QueryService

if TYPE_CHECKING:
    from notectl.commands._context import AppContext


@click.command(
    cls=NotectlCommand,
    examples="""\
  notectl dashboard active-tasks
  notectl dashboard active-tasks -w "priority = high"
  notectl --json dashboard weekly""",
)
@click.argument("name")
@click.option("-w", "--where", "where", multiple=True, help="Extra filter expression (repeatable).")
@click.pass_obj
def dashboard(app: AppContext, name: str, where: tuple[str, ...]) -> None:
    """Run the saved query NAME."""
    app.emit(QueryService(app.vault).dashboard(name, extra_where=tuple(where)))
