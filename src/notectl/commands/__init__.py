"""notectl subcommands.

Command modules import their services at module level, so they are
pulled in only when :func:`register_commands` runs.
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click

# (module, attribute) in ``notectl --help`` order.
_COMMANDS = (
    ("notectl.commands.list_cmd", "list_cmd"),
    ("notectl.commands.dashboard", "dashboard"),
    ("notectl.commands.bulk", "bulk"),
    ("notectl.commands.delete", "delete"),
    ("notectl.commands.schema", "schema"),
    ("notectl.commands.ownership", "ownership"),
)


def register_commands(cli: click.Group) -> None:
    """Attach every notectl command and group to *cli*."""
    for module_name, attr in _COMMANDS:
        cli.add_command(getattr(importlib.import_module(module_name), attr))
