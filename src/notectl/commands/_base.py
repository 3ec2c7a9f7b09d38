"""Click base classes that add an ``--examples`` flag.

Long usage examples live behind ``--examples`` so ``--help`` stays short.
Pass ``examples=...`` to ``@click.command`` / ``@click.group`` via
``cls=NotectlCommand`` or any command declared on a :class:`NotectlGroup`.
"""

from __future__ import annotations

from typing import Any

import click


def _print_examples(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
    if not value or ctx.resilient_parsing:
        return
    examples = getattr(ctx.command, "examples", None) or ""
    click.echo(f"Examples for '{ctx.command_path}':\n")
    click.echo(examples)
    ctx.exit(0)


class _ExamplesMixin:
    params: list[click.Parameter]

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        if examples:
            self.params.append(
                click.Option(
                    ["--examples"],
                    is_flag=True,
                    expose_value=False,
                    is_eager=True,
                    callback=_print_examples,
                    help="Show usage examples.",
                )
            )


class NotectlCommand(_ExamplesMixin, click.Command):
    """Command with optional ``--examples``."""


class NotectlGroup(_ExamplesMixin, click.Group):
    """Group whose subcommands default to :class:`NotectlCommand`."""

    command_class = NotectlCommand
