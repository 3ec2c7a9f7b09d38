"""Locate ``notectl.toml``.

``NOTECTL_CONFIG`` wins when set; otherwise the nearest ``notectl.toml``
in the start directory or any of its ancestors is used.
"""

from __future__ import annotations

import os
from pathlib import Path

CONFIG_FILENAME = "notectl.toml"
CONFIG_ENV_VAR = "NOTECTL_CONFIG"


def find_config(start: Path | None = None) -> Path | None:
    """Return the config file for a vault rooted at or below *start*, or None."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        path = Path(override)
        return path if path.is_file() else None

    here = (start or Path.cwd()).resolve()
    for directory in (here, *here.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None
