"""Filesystem operations for vault records.

INVARIANT: Files are truth. Nothing here caches; every call reads the
directory tree as it is now, in sorted order.

Pure parsing and rendering live in :mod:`notectl.domain.content`
(dependency direction: infrastructure -> domain). This module handles
file I/O, vault-relative paths, and record discovery for both storage
layouts:

- *pooled*: ``<output_dir>/<name>.md``
- *instance-grouped*: ``<output_dir>/<instance>/<file>.md``, where the
  instance's principal record is ``<output_dir>/<instance>/<instance>.md``
"""

from __future__ import annotations

import json
import os
import shutil
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath
from typing import Any

import pathspec

from notectl.domain.content import ParsedRecord, parse_record, render_frontmatter
from notectl.domain.resolver import TypeResolver
from notectl.domain.types import DirMode

RECORD_SUFFIX = ".md"


@dataclass(frozen=True)
class ManagedFile:
    """A record file found by discovery."""

    path: Path
    relative_path: str
    expected_type: str | None = None
    instance: str | None = None


# ---------------------------------------------------------------------------
# File I/O
# ---------------------------------------------------------------------------


def read_record(path: Path) -> ParsedRecord:
    """Read a markdown file into frontmatter and body.

    Raises:
        FrontmatterError: If the YAML block is malformed.
        OSError: If the file cannot be read.
    """
    return parse_record(path.read_text(encoding="utf-8"))


def read_content_file(path: Path) -> tuple[dict[str, Any], str]:
    """Read a markdown file, returning ``(frontmatter, body)``."""
    record = read_record(path)
    return record.frontmatter, record.body


def write_content_file(
    path: Path,
    frontmatter: dict[str, Any],
    body: str,
    *,
    order: Sequence[str] | None = None,
) -> None:
    """Write frontmatter + body to a markdown file, atomically."""
    atomic_write_text(path, render_frontmatter(frontmatter, body, order=order))


def atomic_write_text(path: Path, text: str) -> None:
    """Write *text* to a sibling temp file, then rename it over *path*.

    Creates parent directories as needed. Readers see the old or the new
    content, never a partial write.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.tmp")
    try:
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)
    finally:
        tmp.unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def relative_posix(path: Path, vault_root: Path) -> str:
    """Vault-relative POSIX form of *path*."""
    return path.relative_to(vault_root).as_posix()


def resolve_in_vault(vault_root: Path, relative: str) -> Path:
    """Absolute path for a vault-relative *relative* path.

    Raises:
        ValueError: If the result escapes the vault root.
    """
    result = vault_root / relative
    if not result.resolve().is_relative_to(vault_root.resolve()):
        msg = f"Path escapes vault root: {relative}"
        raise ValueError(msg)
    return result


GITIGNORE = ".gitignore"


def gitignore_patterns(vault_root: Path) -> list[str]:
    """Non-blank, non-comment lines of the vault's ``.gitignore``."""
    path = vault_root / GITIGNORE
    if not path.is_file():
        return []
    lines = (line.strip() for line in path.read_text(encoding="utf-8").splitlines())
    return [line for line in lines if line and not line.startswith("#")]


def build_ignore_spec(vault_root: Path, ignored: Iterable[str] = ()) -> pathspec.PathSpec:
    """Gitwildmatch spec for a whole-vault scan.

    Configured directories are anchored at the vault root; ``.gitignore``
    lines keep their git meaning.
    """
    anchored = [f"/{entry.strip('/')}/" for entry in ignored if entry.strip("/")]
    return pathspec.PathSpec.from_lines("gitwildmatch", [*anchored, *gitignore_patterns(vault_root)])


def _is_hidden(relative: str) -> bool:
    return any(part.startswith(".") for part in PurePosixPath(relative).parts[:-1])


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def collect_pooled_files(vault_root: Path, output_dir: str, expected_type: str | None) -> list[ManagedFile]:
    """Every ``.md`` directly inside *output_dir*."""
    base = vault_root / output_dir
    if not base.is_dir():
        return []
    return [
        ManagedFile(path, relative_posix(path, vault_root), expected_type)
        for path in sorted(base.iterdir())
        if path.is_file() and path.suffix == RECORD_SUFFIX
    ]


def collect_instance_grouped_files(
    vault_root: Path,
    output_dir: str,
    expected_type: str | None,
) -> list[ManagedFile]:
    """Every ``.md`` directly inside each instance folder of *output_dir*."""
    base = vault_root / output_dir
    if not base.is_dir():
        return []
    files: list[ManagedFile] = []
    for instance_dir in sorted(p for p in base.iterdir() if p.is_dir() and not p.name.startswith(".")):
        for path in sorted(instance_dir.iterdir()):
            if path.is_file() and path.suffix == RECORD_SUFFIX:
                files.append(
                    ManagedFile(
                        path,
                        relative_posix(path, vault_root),
                        expected_type,
                        instance=instance_dir.name,
                    )
                )
    return files


def discover_managed_files(
    resolver: TypeResolver,
    vault_root: Path,
    type_path: str | None = None,
    *,
    ignored: Sequence[str] = (),
) -> list[ManagedFile]:
    """Record files for *type_path* (recursing into subtypes), or the whole vault."""
    if not type_path:
        return scan_vault(vault_root, ignored=ignored)

    seen: dict[str, ManagedFile] = {}
    for leaf in resolver.leaf_paths(type_path):
        resolved = resolver.resolve(leaf)
        if resolved is None or not resolved.output_dir:
            continue
        if resolved.dir_mode is DirMode.INSTANCE_GROUPED:
            found = collect_instance_grouped_files(vault_root, resolved.output_dir, leaf)
        else:
            found = collect_pooled_files(vault_root, resolved.output_dir, leaf)
        for item in found:
            seen.setdefault(item.relative_path, item)
    return sorted(seen.values(), key=lambda f: f.relative_path)


def scan_vault(vault_root: Path, *, ignored: Sequence[str] = ()) -> list[ManagedFile]:
    """All ``.md`` files in the vault.

    Skips hidden directories, *ignored* directories and anything the
    vault's ``.gitignore`` excludes.
    """
    spec = build_ignore_spec(vault_root, ignored)
    files: list[ManagedFile] = []
    for path in sorted(vault_root.rglob(f"*{RECORD_SUFFIX}")):
        if not path.is_file():
            continue
        relative = relative_posix(path, vault_root)
        if _is_hidden(relative) or spec.match_file(relative):
            continue
        files.append(ManagedFile(path, relative))
    return files


def list_owner_records(vault_root: Path, output_dir: str) -> list[Path]:
    """Owner records in *output_dir*: flat files and instance principal files."""
    base = vault_root / output_dir
    if not base.is_dir():
        return []
    owners: list[Path] = []
    for entry in sorted(base.iterdir()):
        if entry.is_dir():
            principal = entry / f"{entry.name}{RECORD_SUFFIX}"
            if principal.is_file():
                owners.append(principal)
        elif entry.is_file() and entry.suffix == RECORD_SUFFIX:
            owners.append(entry)
    return owners


def locate_owned_children(owner_record: Path, child_type: str) -> list[Path]:
    """Records owned by *owner_record* under the child type's folder.

    This is the one place that knows the ownership layout: children of an
    owner live in a sibling folder named after the child type, next to
    the owner record (``Drafts/My Novel/idea/*.md``).
    """
    folder = owner_record.parent / child_type.rsplit("/", 1)[-1]
    if not folder.is_dir():
        return []
    return sorted(p for p in folder.iterdir() if p.is_file() and p.suffix == RECORD_SUFFIX)


def find_record_by_name(vault_root: Path, name: str, candidates: Sequence[str]) -> str | None:
    """Resolve a link target to a vault-relative record path.

    Tries the exact vault-relative path first, then a basename match
    among *candidates*; an ambiguous basename resolves to nothing.
    """
    target = name[: -len(RECORD_SUFFIX)] if name.endswith(RECORD_SUFFIX) else name
    direct = f"{target}{RECORD_SUFFIX}"
    if (vault_root / direct).is_file():
        return direct
    matches = [c for c in candidates if PurePosixPath(c).stem == target]
    if len(matches) == 1:
        return matches[0]
    return None


# ---------------------------------------------------------------------------
# Backup
# ---------------------------------------------------------------------------


def create_backup(
    vault_root: Path,
    backup_dir: str,
    files: Sequence[str],
    operation: str,
) -> Path:
    """Copy *files* (vault-relative) under a timestamped backup folder.

    Writes ``manifest.json`` alongside the copies and returns the folder.
    """
    stamp = datetime.now(UTC)
    target = vault_root / backup_dir / stamp.strftime("%Y%m%dT%H%M%S%fZ")
    target.mkdir(parents=True, exist_ok=False)
    for relative in files:
        destination = target / relative
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(vault_root / relative, destination)
    manifest = {
        "timestamp": stamp.isoformat(),
        "operation": operation,
        "files": list(files),
    }
    (target / "manifest.json").write_text(json.dumps(manifest, indent=2) + "\n", encoding="utf-8")
    return target
