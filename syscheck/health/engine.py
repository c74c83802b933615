"""Health check engine — probes targets and classifies the outcome.

A probe is a single HTTP GET with no retries; the timeout lives on the
shared httpx.Client. Each outcome becomes a CheckResult for the store.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import httpx

logger = logging.getLogger(__name__)


# ── Models ───────────────────────────────────────────────────────────────────


class Status(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class CheckResult:
    """Latest known outcome for one target.

    status_code 0 means no response was obtained; checked_at is None until
    the target has been probed once.
    """

    target: str
    status_code: int = 0
    last_error: str = ""
    checked_at: datetime | None = None

    @property
    def ok(self) -> bool:
        return not self.last_error and 200 <= self.status_code < 400

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "target": self.target,
            "status_code": self.status_code,
        }
        if self.last_error:
            data["last_error"] = self.last_error
        data["checked_at"] = self.checked_at.isoformat() if self.checked_at else None
        return data


class ProbeError(Exception):
    """Raised when a probe gets no usable response."""


class HTTPStatusError(ProbeError):
    """Raised when the target answers with a status code >= 400."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"unexpected status code: {status_code}")


# ── Probe ────────────────────────────────────────────────────────────────────


def build_client(timeout: float) -> httpx.Client:
    """Client shared by every probe; its timeout is fixed for the process lifetime."""
    return httpx.Client(timeout=timeout, follow_redirects=True)


def probe_target(client: httpx.Client, target: str) -> int:
    """Issue one GET against ``target`` and return the status code.

    The body is never read. Raises HTTPStatusError for >= 400 and ProbeError
    when the request could not be built, sent, or timed out.
    """
    try:
        with client.stream("GET", target) as resp:
            status = resp.status_code
    except httpx.TimeoutException as e:
        raise ProbeError("timeout") from e
    except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
        raise ProbeError(f"invalid request: {e}") from e
    except httpx.HTTPError as e:
        raise ProbeError(f"request failed: {e}") from e

    if status >= 400:
        raise HTTPStatusError(status)
    return status


def run_check(client: httpx.Client, target: str) -> tuple[CheckResult, bool]:
    """Probe ``target`` and convert the outcome into a (result, success) pair.

    Never raises: every failure is folded into the returned result.
    """
    try:
        status = probe_target(client, target)
    except HTTPStatusError as e:
        return CheckResult(target, e.status_code, str(e), _now()), False
    except ProbeError as e:
        return CheckResult(target, 0, str(e), _now()), False
    except Exception as e:
        logger.debug("Unexpected probe failure for %s", target, exc_info=True)
        return CheckResult(target, 0, f"Error: {type(e).__name__}: {e}", _now()), False
    return CheckResult(target, status, "", _now()), True


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ── Aggregation ──────────────────────────────────────────────────────────────


def derive_status(results: Iterable[CheckResult] | dict[str, CheckResult]) -> Status:
    """Binary verdict: degraded as soon as one target is failing or unchecked."""
    values = results.values() if isinstance(results, dict) else results
    for r in values:
        if r.last_error or not 200 <= r.status_code < 400:
            return Status.DEGRADED
    return Status.HEALTHY
