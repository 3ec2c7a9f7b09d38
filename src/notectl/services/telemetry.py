"""Per-invocation span collection for ``--verbose``.

Service methods decorated with :func:`traced` open a root span; phases
inside them open children with :func:`trace_span` and record counts
with :func:`annotate`. The finished tree lands in
``ServiceResult.meta["telemetry"]``. A traced method called from inside
another traced method nests as a child instead of starting its own tree.

When disabled every entry point is a single ContextVar lookup.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, ParamSpec, TypeVar

import structlog

from notectl.services.result import ServiceResult

log = structlog.get_logger("notectl.telemetry")

_enabled: ContextVar[bool] = ContextVar("notectl_telemetry_enabled", default=False)
_active: ContextVar[Span | None] = ContextVar("notectl_active_span", default=None)


@dataclass
class Span:
    """One timed phase; children are sub-phases in call order."""

    name: str
    children: list[Span] = field(default_factory=list)
    annotations: dict[str, Any] = field(default_factory=dict)
    started: float = field(default_factory=time.perf_counter)
    finished: float | None = None

    @property
    def duration_ms(self) -> float:
        if self.finished is None:
            return 0.0
        return (self.finished - self.started) * 1000

    def child(self, name: str) -> Span:
        span = Span(name=name)
        self.children.append(span)
        return span

    def end(self) -> None:
        self.finished = time.perf_counter()

    def annotate(self, key: str, value: Any) -> None:
        self.annotations[key] = value

    def to_dict(self) -> dict[str, Any]:
        node: dict[str, Any] = {"name": self.name, "duration_ms": round(self.duration_ms, 2)}
        if self.annotations:
            node["annotations"] = dict(self.annotations)
        if self.children:
            node["children"] = [c.to_dict() for c in self.children]
        return node


@contextmanager
def _activate(span: Span) -> Iterator[Span]:
    token = _active.set(span)
    try:
        yield span
    finally:
        span.end()
        _active.reset(token)


@contextmanager
def trace_span(name: str) -> Iterator[Span | None]:
    """Time a phase of the current traced call; yields None when disabled."""
    parent = get_current_span()
    if parent is None:
        yield None
        return
    with _activate(parent.child(name)) as span:
        yield span


def annotate(**values: Any) -> None:
    """Attach *values* to the active span, if any."""
    span = get_current_span()
    if span is None:
        return
    for key, value in values.items():
        span.annotate(key, value)


P = ParamSpec("P")
R = TypeVar("R")


def traced(func: Callable[P, R]) -> Callable[P, R]:
    """Record *func* as a span; outermost calls attach the tree to their result."""

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        if not _enabled.get():
            return func(*args, **kwargs)

        parent = _active.get()
        span = parent.child(func.__qualname__) if parent else Span(name=func.__qualname__)
        with _activate(span):
            result = func(*args, **kwargs)

        if parent is not None:
            return result
        log.debug(
            "span.complete",
            span_name=span.name,
            duration_ms=round(span.duration_ms, 2),
            ok=result.ok if isinstance(result, ServiceResult) else True,
        )
        if isinstance(result, ServiceResult):
            meta = {**(result.meta or {}), "telemetry": span.to_dict()}
            return result.model_copy(update={"meta": meta})  # type: ignore[return-value]
        return result

    return wrapper


def enable_telemetry() -> None:
    """Turn span collection on (called by AppContext for ``--verbose``)."""
    _enabled.set(True)


def disable_telemetry() -> None:
    _enabled.set(False)


def get_current_span() -> Span | None:
    """The active span; None when disabled or outside a traced call."""
    if not _enabled.get():
        return None
    return _active.get()
