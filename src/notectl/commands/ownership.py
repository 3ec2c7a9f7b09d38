"""Command group: the ownership index and its rules."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from notectl.commands._base import NotectlGroup
from notectl.services.ownership import OwnershipService

if TYPE_CHECKING:
    from notectl.commands._context import AppContext

_OWNERSHIP_EXAMPLES = """\
  notectl ownership show
  notectl ownership check Drafts/essay/essay.md
  notectl ownership can-own Ideas/loose.md Drafts/essay/essay.md"""


@click.group(cls=NotectlGroup, examples=_OWNERSHIP_EXAMPLES)
@click.pass_obj
def ownership(app: AppContext) -> None:
    """Inspect which records own which."""


@ownership.command()
@click.pass_obj
def show(app: AppContext) -> None:
    """List every owned record grouped by owner."""
    app.emit(OwnershipService(app.vault).show())


@ownership.command()
@click.argument("path")
@click.pass_obj
def check(app: AppContext, path: str) -> None:
    """Check that the record at PATH links to no record owned by another."""
    app.emit(OwnershipService(app.vault).check_record(path))


@ownership.command("can-own")
@click.argument("candidate")
@click.argument("owner")
@click.pass_obj
def can_own(app: AppContext, candidate: str, owner: str) -> None:
    """Check whether OWNER may take ownership of CANDIDATE."""
    app.emit(OwnershipService(app.vault).check_new_owned(candidate, owner))
