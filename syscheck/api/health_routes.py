"""Health + metrics endpoints.

Endpoints:
  GET /health   — aggregate status, counters and the latest result per target
  GET /metrics  — success/failure counters in Prometheus text format

Handlers are plain ``def`` so FastAPI runs them on its thread pool; the
result store's read lock lets any number of them snapshot concurrently.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import Response

from syscheck.metrics import CONTENT_TYPE, PrometheusSink, render_counters

logger = logging.getLogger(__name__)

health_router = APIRouter()


@health_router.get("/health")
def health(request: Request) -> dict[str, Any]:
    """Overall verdict plus every target's last known result."""
    snapshot = request.app.state.store.snapshot()
    return snapshot.to_dict()


@health_router.get("/metrics")
def metrics(request: Request) -> Response:
    """Lifetime success/failure counters."""
    sink = getattr(request.app.state, "metrics_sink", None)
    if isinstance(sink, PrometheusSink):
        return Response(content=sink.render(), media_type=CONTENT_TYPE)

    snapshot = request.app.state.store.snapshot()
    return Response(content=render_counters(snapshot), media_type=CONTENT_TYPE)
