"""Output mode selection for ServiceResult.

Three modes, picked from the global flags:
- ``--json``: the full result as JSON (ok, op, data, warnings, error, meta)
- ``--quiet``: record paths only, one per line
- default: Rich tables and trees from :mod:`notectl.output.renderers`
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING

from notectl.output.renderers import render_quiet, render_result

if TYPE_CHECKING:
    from notectl.services.result import ServiceResult


@dataclass(frozen=True)
class OutputSettings:
    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    max_preview: int = 50


def format_json(result: ServiceResult) -> str:
    """Serialize *result*; dates and YAML scalars fall back to ``str``."""
    return json.dumps(result.model_dump(mode="python"), indent=2, default=str)


def format_result(result: ServiceResult, *, settings: OutputSettings | None = None) -> str:
    """Format a ServiceResult for display in the requested mode."""
    settings = settings or OutputSettings()
    if settings.json_output:
        return format_json(result)
    if settings.quiet:
        return render_quiet(result)
    return render_result(result, verbose=settings.verbose, max_preview=settings.max_preview)
