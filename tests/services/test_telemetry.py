"""Tests for span collection on service calls."""

from __future__ import annotations

from notectl.domain.bulk import build_operations
from notectl.infrastructure.vault import Vault
from notectl.services.bulk import BulkService
from notectl.services.query import QueryService
from notectl.services.result import ServiceResult
from notectl.services.targeting import SelectorSet
from notectl.services.telemetry import (
    Span,
    annotate,
    disable_telemetry,
    enable_telemetry,
    get_current_span,
    trace_span,
    traced,
)


class TestSpan:
    def test_to_dict(self) -> None:
        span = Span(name="root")
        child = Span(name="child")
        span.children.append(child)
        span.annotate("count", 3)
        child.end()
        span.end()
        data = span.to_dict()
        assert data["name"] == "root"
        assert data["annotations"] == {"count": 3}
        assert data["children"][0]["name"] == "child"
        assert data["duration_ms"] >= 0

    def test_unfinished_span_has_zero_duration(self) -> None:
        assert Span(name="x").duration_ms == 0.0


class TestTracing:
    def test_disabled_by_default(self, vault: Vault) -> None:
        disable_telemetry()
        result = QueryService(vault).list_records(SelectorSet())
        assert result.meta is None
        assert get_current_span() is None

    def test_trace_span_is_noop_when_disabled(self) -> None:
        with trace_span("x") as span:
            assert span is None

    def test_enabled_attaches_span_tree(self, vault: Vault) -> None:
        enable_telemetry()
        result = BulkService(vault).apply(
            SelectorSet(type_path="idea"), build_operations(set_=["status=done"])
        )
        assert result.meta is not None
        tree = result.meta["telemetry"]
        assert tree["name"] == "BulkService.apply"
        assert [c["name"] for c in tree["children"]] == ["resolve_targets", "plan", "ownership"]
        assert tree["annotations"] == {"matched": 3, "affected": 3}

    def test_plain_return_values_pass_through(self) -> None:
        enable_telemetry()

        @traced
        def double(x: int) -> int:
            return x * 2

        assert double(2) == 4

    def test_nested_traced_call_becomes_child(self) -> None:
        enable_telemetry()

        @traced
        def inner() -> ServiceResult:
            annotate(rows=2)
            return ServiceResult(ok=True, op="inner")

        @traced
        def outer() -> ServiceResult:
            with trace_span("phase"):
                nested = inner()
            assert nested.meta is None
            return ServiceResult(ok=True, op="outer")

        tree = outer().meta["telemetry"]
        phase = tree["children"][0]
        assert phase["name"] == "phase"
        assert phase["children"][0]["name"].endswith("inner")
        assert phase["children"][0]["annotations"] == {"rows": 2}

    def test_annotate_is_noop_without_active_span(self) -> None:
        enable_telemetry()
        annotate(count=1)
        assert get_current_span() is None

    def test_child_span_tree_shape(self) -> None:
        root = Span(name="root")
        phase = root.child("phase")
        phase.annotate("rows", 2)
        phase.end()
        root.end()
        tree = root.to_dict()
        assert tree["children"] == [
            {"name": "phase", "duration_ms": tree["children"][0]["duration_ms"], "annotations": {"rows": 2}}
        ]
