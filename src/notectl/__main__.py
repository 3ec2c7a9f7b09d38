"""Allow ``python -m notectl``."""

from notectl.cli import cli

cli()
