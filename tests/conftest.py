"""Shared pytest fixtures and test helpers for notectl tests.

The sample vault used across the suite::

    Ideas/                      idea (pooled)
      alpha.md beta.md loose.md
    Objectives/Tasks/           objective/task
      write-tests.md ship.md
    Objectives/Milestones/      objective/milestone
      v1.md
    Drafts/                     draft (instance-grouped, owns idea)
      essay/essay.md
      essay/idea/seed.md        owned by essay
      other/other.md
"""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from click.testing import CliRunner
from ruamel.yaml import YAML

from notectl.config.settings import NotectlSettings
from notectl.domain.schema import Schema
from notectl.infrastructure.schema_loader import parse_schema
from notectl.infrastructure.vault import Vault
from notectl.services.telemetry import disable_telemetry

SCHEMA_YAML = """\
schema_version: "1.0"
enums:
  status: [raw, active, done]
shared_fields:
  status:
    prompt: select
    enum: status
    default: raw
  tags:
    prompt: list
types:
  idea:
    output_dir: Ideas
    shared_fields: [status, tags]
    fields:
      title:
        prompt: text
        required: true
  objective:
    output_dir: Objectives
    shared_fields: [status]
    fields:
      priority:
        prompt: select
        options: [low, high]
    subtypes:
      task:
        output_dir: Objectives/Tasks
        fields:
          due:
            prompt: date
      milestone:
        output_dir: Objectives/Milestones
        field_overrides:
          status:
            default: active
  draft:
    output_dir: Drafts
    dir_mode: instance-grouped
    fields:
      ideas:
        prompt: list
        format: wikilink
        owns: idea
      related:
        prompt: list
        format: wikilink
"""

CONFIG_TOML = """\
[vault]
name = "test-vault"

[dashboards.active-tasks]
type = "objective/task"
where = ["status = active"]
fields = ["status", "priority"]
description = "Tasks in flight"

[dashboards.ideas]
path = "Ideas"
output = "list"
"""

RECORDS: dict[str, str] = {
    "Ideas/alpha.md": (
        "---\ntype: idea\ntitle: Alpha\nstatus: active\ntags: [ml, ai]\n---\n"
        "Alpha body mentions the Retro.\n"
    ),
    "Ideas/beta.md": "---\ntype: idea\ntitle: Beta\nstatus: raw\n---\nBeta body.\n",
    "Ideas/loose.md": "---\ntype: idea\ntitle: Loose\n---\nA pooled idea.\n",
    "Objectives/Tasks/write-tests.md": (
        "---\ntype: objective\nobjective-type: task\nstatus: active\n"
        "priority: high\ndue: 2025-03-01\n---\nWrite the tests.\n"
    ),
    "Objectives/Tasks/ship.md": (
        "---\ntype: objective\nobjective-type: task\nstatus: done\npriority: low\n---\nShip it.\n"
    ),
    "Objectives/Milestones/v1.md": (
        "---\ntype: objective\nobjective-type: milestone\nstatus: active\n---\nFirst release.\n"
    ),
    "Drafts/essay/essay.md": (
        '---\ntype: draft\nideas: ["[[seed]]"]\nrelated: ["[[loose]]"]\n---\nAn essay.\n'
    ),
    "Drafts/essay/idea/seed.md": "---\ntype: idea\ntitle: Seed\n---\nOwned by the essay.\n",
    "Drafts/other/other.md": "---\ntype: draft\nrelated: []\n---\nAnother draft.\n",
}

ALL_RECORDS = sorted(RECORDS)


def write_record(root: Path, relative: str, text: str) -> Path:
    """Write *text* at the vault-relative *relative* path."""
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def load_sample_schema() -> Schema:
    return parse_schema(YAML(typ="safe").load(SCHEMA_YAML))


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None]:
    """Keep env overrides and telemetry state from leaking between tests."""
    monkeypatch.delenv("NOTECTL_CONFIG", raising=False)
    monkeypatch.delenv("NOTECTL_VAULT_ROOT", raising=False)
    monkeypatch.delenv("NOTECTL_VAULT", raising=False)
    yield
    disable_telemetry()


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def schema() -> Schema:
    """The sample schema, parsed and checked."""
    return load_sample_schema()


@pytest.fixture
def vault_root(tmp_path: Path) -> Path:
    """Temporary vault with schema, config, and the sample records.

    This is the single source of truth for the vault layout; every
    vault-related fixture builds on it.
    """
    write_record(tmp_path, ".notectl/schema.yaml", SCHEMA_YAML)
    write_record(tmp_path, "notectl.toml", CONFIG_TOML)
    for relative, text in RECORDS.items():
        write_record(tmp_path, relative, text)
    return tmp_path


@pytest.fixture
def vault(vault_root: Path) -> Vault:
    """Vault handle over the sample vault."""
    return Vault(NotectlSettings.from_cli(vault_root=vault_root))


@pytest.fixture
def _isolated_vault(vault_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Change CWD to the sample vault so CLI calls pick it up.

    Use via ``@pytest.mark.usefixtures("_isolated_vault")`` on command
    test classes.
    """
    monkeypatch.chdir(vault_root)
