"""Rich Console factory and theme for notectl output.

Consoles render to a StringIO buffer so renderers keep the
``format_result() -> str`` contract. Outside a terminal (tests, pipes)
Rich drops color codes on its own. Markup is off so frontmatter values
such as ``[[seed]]`` print verbatim.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

NOTECTL_THEME = Theme(
    {
        "nc.ok": "bold green",
        "nc.error": "bold red",
        "nc.warning": "bold yellow",
        "nc.op": "bold cyan",
        "nc.key": "dim",
        "nc.path": "blue",
        "nc.type": "magenta",
        "nc.old": "red",
        "nc.new": "green",
        "nc.dry": "bold yellow",
    }
)


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer.

    Args:
        no_color: Disable ANSI escape codes.
        width: Override terminal width (keeps table layout stable in tests).
    """
    return Console(
        file=StringIO(),
        theme=NOTECTL_THEME,
        no_color=no_color,
        highlight=False,
        markup=False,
        emoji=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()
