"""AppContext: per-invocation state shared by every command.

The root group builds one from the global flags; commands receive it via
``@click.pass_obj``, ask it for the vault and hand their ServiceResult
back to :meth:`AppContext.emit`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

import click

from notectl.config.logging import configure_logging
from notectl.infrastructure.vault import Vault
from notectl.output.formatters import OutputSettings, format_result
from notectl.services.telemetry import disable_telemetry, enable_telemetry

if TYPE_CHECKING:
    from notectl.config.settings import NotectlSettings
    from notectl.services.result import ServiceResult


class AppContext:
    """Settings, lazy vault and output routing for one CLI run."""

    def __init__(self, settings: NotectlSettings) -> None:
        self.settings = settings
        self._vault: Vault | None = None
        configure_logging(verbose=settings.verbose, log_json=settings.log_json)
        if settings.verbose:
            enable_telemetry()
        else:
            disable_telemetry()

    @property
    def vault(self) -> Vault:
        """Built on first access, so ``--help`` never reads the schema."""
        if self._vault is None:
            self._vault = Vault(self.settings)
        return self._vault

    @property
    def output_settings(self) -> OutputSettings:
        return OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
            max_preview=self.settings.bulk.max_preview,
        )

    def emit(self, result: ServiceResult) -> None:
        """Print *result*: stdout on success, stderr plus exit 1 on failure.

        Outside JSON mode, warnings go to stderr after the payload.
        """
        settings = self.output_settings
        rendered = format_result(result, settings=settings)
        if not result.ok:
            self._fail(rendered)
        click.echo(rendered)
        if settings.json_output:
            return
        for warning in result.warnings:
            click.echo(f"WARNING: {warning}", err=True)

    @staticmethod
    def _fail(rendered: str) -> NoReturn:
        click.echo(rendered, err=True)
        raise SystemExit(1)
