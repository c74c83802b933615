"""Metrics sinks and /metrics rendering.

The check loop reports each outcome to a MetricsSink; it does not care
whether the counts end up in prometheus_client counters or nowhere.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from prometheus_client import CollectorRegistry, Counter, generate_latest

if TYPE_CHECKING:
    from .health.store import StoreSnapshot

CONTENT_TYPE = "text/plain; version=0.0.4"


class MetricsSink(Protocol):
    def record_success(self) -> None: ...

    def record_failure(self) -> None: ...


class NullSink:
    """Sink for setups where the store's own counters are the only export."""

    def record_success(self) -> None:
        pass

    def record_failure(self) -> None:
        pass


class PrometheusSink:
    """Exports probe outcomes as prometheus_client counters.

    Uses a private registry unless one is passed, so several instances
    (tests, multiple apps) never collide on metric names.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.success_total = Counter(
            "syscheck_success",
            "Total successful target checks",
            registry=self.registry,
        )
        self.failure_total = Counter(
            "syscheck_failure",
            "Total failed target checks",
            registry=self.registry,
        )

    def record_success(self) -> None:
        self.success_total.inc()

    def record_failure(self) -> None:
        self.failure_total.inc()

    def render(self) -> bytes:
        return generate_latest(self.registry)


def render_counters(snapshot: StoreSnapshot) -> str:
    """Two-line exposition of the store's lifetime counters."""
    return (
        f"syscheck_success_total {snapshot.success_count}\n"
        f"syscheck_failure_total {snapshot.failure_count}\n"
    )


def build_sink(backend: str) -> MetricsSink:
    if backend == "prometheus":
        return PrometheusSink()
    return NullSink()
