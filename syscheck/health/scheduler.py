"""Check loop — probes every target once per interval until stopped.

Runs as a single asyncio task. Probes are blocking httpx calls, so each one
runs in a worker thread to keep the event loop free for HTTP requests.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

import httpx

from ..metrics import MetricsSink, NullSink
from .engine import CheckResult, run_check
from .store import ResultStore

logger = logging.getLogger(__name__)

CheckFn = Callable[[httpx.Client, str], tuple[CheckResult, bool]]


class CheckLoop:
    """Runs a pass over all targets immediately, then one per interval.

    Stopping is cooperative: the stop signal is honoured while waiting for
    the next tick and between probes, never in the middle of one.
    """

    def __init__(
        self,
        client: httpx.Client,
        store: ResultStore,
        interval: float,
        sink: MetricsSink | None = None,
        check: CheckFn = run_check,
    ) -> None:
        self.client = client
        self.store = store
        self.interval = interval
        self.sink = sink or NullSink()
        self.passes = 0
        self._check = check
        self._executor: ThreadPoolExecutor | None = None
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background loop."""
        if self.running:
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._run(), name="syscheck-check-loop")
        logger.info(
            "Check loop started: %d targets every %.1fs",
            len(self.store.targets), self.interval,
        )

    async def stop(self) -> None:
        """Signal the loop to stop and wait for it to exit."""
        self._stop.set()
        if self._task:
            # asyncio.wait never raises the task's own cancellation,
            # only a cancellation of the caller
            await asyncio.wait({self._task})
            task, self._task = self._task, None
            if not task.cancelled():
                task.result()
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
        logger.info("Check loop stopped after %d passes", self.passes)

    async def run_once(self) -> list[CheckResult]:
        """Probe every target once, in configured order."""
        loop = asyncio.get_running_loop()
        results: list[CheckResult] = []

        for target in self.store.targets:
            if self._stop.is_set():
                logger.info("Stop requested, abandoning pass before %s", target)
                return results

            result, success = await loop.run_in_executor(
                self._get_executor(), self._check, self.client, target,
            )
            self.store.update(result, success)
            if success:
                self.sink.record_success()
                logger.info("OK: %s %d", target, result.status_code)
            else:
                self.sink.record_failure()
                logger.warning("FAIL: %s %s", target, result.last_error)
            results.append(result)

        self.passes += 1
        return results

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="syscheck-probe")
        return self._executor

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while not self._stop.is_set():
            started = loop.time()
            try:
                await self.run_once()
            except Exception:
                logger.exception("Check pass failed")

            delay = max(0.0, self.interval - (loop.time() - started))
            if await self._wait_for_stop(delay):
                break

    async def _wait_for_stop(self, delay: float) -> bool:
        """Sleep until the next tick; True if the stop signal came first."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True
