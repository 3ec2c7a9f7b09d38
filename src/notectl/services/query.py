"""QueryService: read-only record listing and saved dashboards.

Two surfaces, both built on :func:`~notectl.services.targeting.resolve_targets`:

- ``list_records``: ad-hoc selectors; with no selector at all the whole
  vault is listed (listing never mutates, so Gate 1 is satisfied
  implicitly).
- ``dashboard``: a named query from ``[dashboards.<name>]`` in
  ``notectl.toml``, optionally narrowed by extra where-expressions.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from notectl.domain.errors import NotectlError
from notectl.services import result as codes
from notectl.services._helpers import pick_fields
from notectl.services.base import BaseService
from notectl.services.contracts import DashboardResultData, ListResultData, dump_validated
from notectl.services.result import ServiceResult
from notectl.services.targeting import (
    SelectorSet,
    TargetingResult,
    has_any_targeting,
    resolve_targets,
    targeting_failure,
)
from notectl.services.telemetry import annotate, traced


class QueryService(BaseService):
    """Listing and dashboard queries."""

    def _targets(self, selectors: SelectorSet) -> TargetingResult | ServiceResult:
        try:
            schema = self._vault.load_schema()
        except NotectlError as exc:
            return self._from_error("list", exc)
        return resolve_targets(
            selectors,
            schema,
            self._vault.root,
            ignored=self._vault.ignored_directories(schema),
            near_match_limit=self._vault.settings.targeting.near_match_limit,
        )

    @traced
    def list_records(
        self,
        selectors: SelectorSet,
        *,
        fields: list[str] | None = None,
    ) -> ServiceResult:
        """List records matching *selectors*, projecting *fields*."""
        op = "list"
        if not has_any_targeting(selectors):
            selectors = replace(selectors, select_all=True)
        targeting = self._targets(selectors)
        if isinstance(targeting, ServiceResult):
            return targeting
        if not targeting.ok:
            return targeting_failure(op, targeting)

        data = self._payload(selectors, targeting, fields)
        annotate(count=data["count"])
        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(ListResultData, data),
            warnings=targeting.warnings,
        )

    @traced
    def dashboard(self, name: str, *, extra_where: tuple[str, ...] = ()) -> ServiceResult:
        """Run the saved query *name*."""
        op = "dashboard"
        settings = self._vault.settings
        saved = settings.dashboard(name)
        if saved is None:
            available = sorted(settings.dashboards)
            message = f"No dashboard named '{name}'"
            if available:
                message += f". Available: {', '.join(available)}"
            return ServiceResult.failure(op, codes.NOT_FOUND, message, detail={"available": available})

        selectors = SelectorSet(
            type_path=saved.type,
            path_glob=saved.path,
            where=(*saved.where, *extra_where),
            body_query=saved.body,
        )
        if not has_any_targeting(selectors):
            selectors = replace(selectors, select_all=True)
        targeting = self._targets(selectors)
        if isinstance(targeting, ServiceResult):
            return targeting.model_copy(update={"op": op})
        if not targeting.ok:
            return targeting_failure(op, targeting)

        data = self._payload(selectors, targeting, saved.fields)
        data.update(name=name, output=saved.output, fields_requested=list(saved.fields))
        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(DashboardResultData, data),
            warnings=targeting.warnings,
        )

    @staticmethod
    def _payload(
        selectors: SelectorSet,
        targeting: TargetingResult,
        fields: list[str] | None,
    ) -> dict[str, Any]:
        items = [
            {
                "path": record.path,
                "type": record.type_path,
                "fields": pick_fields(record.frontmatter, fields),
            }
            for record in targeting.files
        ]
        return {
            "count": len(items),
            "type": selectors.type_path,
            "where": list(selectors.where),
            "items": items,
        }
