"""Settings for one notectl invocation.

Sources, highest precedence first: CLI flags (init kwargs), ``NOTECTL_*``
env vars (``__`` separates nested keys, e.g. ``NOTECTL_BULK__BACKUP``),
``notectl.toml``, then the section model defaults.
"""

from __future__ import annotations

import tomllib
from contextvars import ContextVar
from pathlib import Path
from typing import Any

import click
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from notectl.config.discovery import find_config
from notectl.config.models import BulkConfig, DashboardConfig, TargetingConfig, VaultConfig

# TOML payload for the settings object under construction.
_toml_payload: ContextVar[dict[str, Any] | None] = ContextVar("notectl_toml_payload", default=None)


def read_toml(path: Path) -> dict[str, Any]:
    """Parse *path*; syntax errors become a ClickException naming the file."""
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise click.ClickException(f"Invalid TOML in {path}: {exc}") from exc


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Serve top-level tables of an already parsed ``notectl.toml``."""

    def __init__(self, settings_cls: type[BaseSettings], data: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._data = data

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return self._data.get(field_name), field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        return {key: value for key, value in self._data.items() if key in self.settings_cls.model_fields}


class NotectlSettings(BaseSettings):
    """Frozen settings held by :class:`~notectl.commands._context.AppContext`.

    Attributes:
        vault_root: ``--vault``, else the directory holding ``notectl.toml``,
            else the CWD.
        config_path: The TOML file that was read, if any.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "NOTECTL_",
        "env_nested_delimiter": "__",
    }

    vault_root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False

    vault: VaultConfig = Field(default_factory=VaultConfig)
    bulk: BulkConfig = Field(default_factory=BulkConfig)
    targeting: TargetingConfig = Field(default_factory=TargetingConfig)
    dashboards: dict[str, DashboardConfig] = Field(default_factory=dict)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        toml = TomlSettingsSource(settings_cls, _toml_payload.get() or {})
        return init_settings, env_settings, toml

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        vault_root: Path | None = None,
        **cli_flags: Any,
    ) -> NotectlSettings:
        """Build settings for a CLI run.

        An explicit *config_path* must exist; otherwise ``notectl.toml`` is
        looked up from *vault_root* (or the CWD) upwards.

        Raises:
            click.ClickException: Missing explicit config or invalid TOML.
        """
        if config_path:
            toml_path: Path | None = Path(config_path)
            if not toml_path.is_file():
                raise click.ClickException(f"Config file not found: {config_path}")
        else:
            toml_path = find_config(vault_root)

        if vault_root is None:
            vault_root = toml_path.parent if toml_path else Path.cwd()

        token = _toml_payload.set(read_toml(toml_path) if toml_path else {})
        try:
            return cls(vault_root=vault_root.resolve(), config_path=toml_path, **cli_flags)
        finally:
            _toml_payload.reset(token)

    @property
    def schema_file(self) -> Path:
        return self.vault_root / self.vault.schema_path

    def dashboard(self, name: str) -> DashboardConfig | None:
        return self.dashboards.get(name)
