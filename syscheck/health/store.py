"""In-memory result store — latest result per target plus lifetime counters.

One writer (the check loop) and any number of reader threads (HTTP handlers)
share a single ResultStore, guarded by a reader/writer lock.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from .engine import CheckResult, Status, derive_status


class RWLock:
    """Reader/writer lock: many concurrent readers or one writer.

    A writer waiting for the lock blocks new readers, so a steady stream of
    readers cannot starve it.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class StoreSnapshot:
    """Independent copy of the store at one point in time."""

    results: dict[str, CheckResult] = field(default_factory=dict)
    success_count: int = 0
    failure_count: int = 0

    @property
    def status(self) -> Status:
        return derive_status(self.results)

    def to_dict(self) -> dict[str, Any]:
        """Payload served by GET /health."""
        return {
            "status": self.status.value,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "results": {t: r.to_dict() for t, r in self.results.items()},
        }


class ResultStore:
    """Latest CheckResult per configured target plus success/failure counters.

    Every target has an entry from construction onwards; counters only grow.
    """

    def __init__(self, targets: Iterable[str]) -> None:
        self._lock = RWLock()
        self._results: dict[str, CheckResult] = {t: CheckResult(target=t) for t in targets}
        self._success = 0
        self._failure = 0

    @property
    def targets(self) -> list[str]:
        return list(self._results)

    def update(self, result: CheckResult, success: bool) -> None:
        """Replace the result for ``result.target`` and bump exactly one counter."""
        with self._lock.write_locked():
            if result.target not in self._results:
                raise KeyError(f"unknown target: {result.target}")
            self._results[result.target] = result
            if success:
                self._success += 1
            else:
                self._failure += 1

    def snapshot(self) -> StoreSnapshot:
        with self._lock.read_locked():
            return StoreSnapshot(
                results=dict(self._results),
                success_count=self._success,
                failure_count=self._failure,
            )

    def get(self, target: str) -> CheckResult:
        with self._lock.read_locked():
            return self._results[target]
