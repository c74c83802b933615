"""Tests for the in-memory result store and its reader/writer lock."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone

import pytest

from syscheck.health.engine import CheckResult, Status
from syscheck.health.store import ResultStore, RWLock, StoreSnapshot

TARGETS = ["http://ok.test", "http://bad.test"]


@pytest.fixture
def store() -> ResultStore:
    return ResultStore(TARGETS)


def _ok(target: str, code: int = 200) -> CheckResult:
    return CheckResult(target, code, "", datetime.now(timezone.utc))


# ── ResultStore ──────────────────────────────────────────────────────────────


class TestResultStore:
    def test_initialized_with_every_target(self, store: ResultStore) -> None:
        snap = store.snapshot()
        assert list(snap.results) == TARGETS
        assert all(r == CheckResult(target=t) for t, r in snap.results.items())
        assert snap.success_count == 0
        assert snap.failure_count == 0

    def test_targets_keep_configured_order(self) -> None:
        targets = ["http://c.test", "http://a.test", "http://b.test"]
        assert ResultStore(targets).targets == targets

    def test_update_success(self, store: ResultStore) -> None:
        store.update(_ok("http://ok.test"), True)
        snap = store.snapshot()
        assert snap.results["http://ok.test"].status_code == 200
        assert snap.success_count == 1
        assert snap.failure_count == 0

    def test_update_failure(self, store: ResultStore) -> None:
        store.update(CheckResult("http://bad.test", 0, "timeout"), False)
        snap = store.snapshot()
        assert snap.results["http://bad.test"].last_error == "timeout"
        assert snap.success_count == 0
        assert snap.failure_count == 1

    def test_keeps_only_latest(self, store: ResultStore) -> None:
        store.update(_ok("http://ok.test", 200), True)
        store.update(_ok("http://ok.test", 204), True)
        assert store.get("http://ok.test").status_code == 204
        assert len(store.snapshot().results) == len(TARGETS)

    def test_unknown_target_rejected(self, store: ResultStore) -> None:
        with pytest.raises(KeyError):
            store.update(_ok("http://other.test"), True)
        snap = store.snapshot()
        assert "http://other.test" not in snap.results
        assert snap.success_count == 0

    def test_snapshot_is_independent(self, store: ResultStore) -> None:
        snap = store.snapshot()
        snap.results["http://ok.test"] = _ok("http://ok.test", 500)
        del snap.results["http://bad.test"]
        assert store.get("http://ok.test").status_code == 0
        assert list(store.snapshot().results) == TARGETS

    def test_snapshot_unaffected_by_later_updates(self, store: ResultStore) -> None:
        snap = store.snapshot()
        store.update(_ok("http://ok.test"), True)
        assert snap.results["http://ok.test"].status_code == 0
        assert snap.success_count == 0

    def test_snapshot_idempotent(self, store: ResultStore) -> None:
        store.update(_ok("http://ok.test"), True)
        assert store.snapshot() == store.snapshot()

    def test_example_pair(self, store: ResultStore) -> None:
        store.update(_ok("http://ok.test"), True)
        store.update(CheckResult("http://bad.test", 0, "timeout"), False)
        snap = store.snapshot()
        assert snap.success_count == 1
        assert snap.failure_count == 1
        assert snap.status == Status.DEGRADED

    def test_counters_monotonic_under_concurrency(self, store: ResultStore) -> None:
        def writer(success: bool) -> None:
            for _ in range(200):
                store.update(_ok("http://ok.test"), success)

        threads = [threading.Thread(target=writer, args=(i % 2 == 0,)) for i in range(4)]
        for t in threads:
            t.start()

        last_total = 0
        while any(t.is_alive() for t in threads):
            snap = store.snapshot()
            total = snap.success_count + snap.failure_count
            assert total >= last_total
            last_total = total

        for t in threads:
            t.join()
        snap = store.snapshot()
        assert snap.success_count == 400
        assert snap.failure_count == 400

    def test_update_atomic_with_snapshot(self, store: ResultStore) -> None:
        """A reader never sees a result without its counter bump, or the reverse."""
        rounds = 2000
        torn: list[StoreSnapshot] = []
        done = threading.Event()

        def writer() -> None:
            for i in range(1, rounds + 1):
                store.update(CheckResult("http://ok.test", i), True)
            done.set()

        def reader() -> None:
            while not done.is_set():
                snap = store.snapshot()
                if snap.results["http://ok.test"].status_code != snap.success_count:
                    torn.append(snap)

        readers = [threading.Thread(target=reader) for _ in range(4)]
        for t in readers:
            t.start()
        writer_thread = threading.Thread(target=writer)
        writer_thread.start()
        writer_thread.join()
        for t in readers:
            t.join()

        assert not torn
        assert store.snapshot().success_count == rounds


# ── StoreSnapshot ────────────────────────────────────────────────────────────


class TestStoreSnapshot:
    def test_to_dict_shape(self) -> None:
        ts = datetime(2025, 1, 1, tzinfo=timezone.utc)
        snap = StoreSnapshot(
            results={
                "http://ok.test": CheckResult("http://ok.test", 200, "", ts),
                "http://bad.test": CheckResult("http://bad.test", 0, "timeout", ts),
            },
            success_count=1,
            failure_count=1,
        )
        assert snap.to_dict() == {
            "status": "degraded",
            "success_count": 1,
            "failure_count": 1,
            "results": {
                "http://ok.test": {
                    "target": "http://ok.test",
                    "status_code": 200,
                    "checked_at": "2025-01-01T00:00:00+00:00",
                },
                "http://bad.test": {
                    "target": "http://bad.test",
                    "status_code": 0,
                    "last_error": "timeout",
                    "checked_at": "2025-01-01T00:00:00+00:00",
                },
            },
        }

    def test_healthy(self) -> None:
        snap = StoreSnapshot(results={"a": CheckResult("a", 200)}, success_count=1)
        assert snap.status == Status.HEALTHY


# ── RWLock ───────────────────────────────────────────────────────────────────


class TestRWLock:
    def test_readers_share(self) -> None:
        lock = RWLock()
        barrier = threading.Barrier(3, timeout=2)
        errors: list[BaseException] = []

        def reader() -> None:
            try:
                with lock.read_locked():
                    barrier.wait()
            except threading.BrokenBarrierError as e:
                errors.append(e)

        threads = [threading.Thread(target=reader) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert not errors

    def test_writer_waits_for_reader(self) -> None:
        lock = RWLock()
        reader_in = threading.Event()
        release_reader = threading.Event()
        writer_in = threading.Event()

        def reader() -> None:
            with lock.read_locked():
                reader_in.set()
                release_reader.wait(2)

        def writer() -> None:
            with lock.write_locked():
                writer_in.set()

        r = threading.Thread(target=reader)
        r.start()
        assert reader_in.wait(2)
        w = threading.Thread(target=writer)
        w.start()

        assert not writer_in.wait(0.1)
        release_reader.set()
        assert writer_in.wait(2)
        r.join()
        w.join()

    def test_reader_waits_for_writer(self) -> None:
        lock = RWLock()
        writer_in = threading.Event()
        release_writer = threading.Event()
        reader_in = threading.Event()

        def writer() -> None:
            with lock.write_locked():
                writer_in.set()
                release_writer.wait(2)

        def reader() -> None:
            with lock.read_locked():
                reader_in.set()

        w = threading.Thread(target=writer)
        w.start()
        assert writer_in.wait(2)
        r = threading.Thread(target=reader)
        r.start()

        assert not reader_in.wait(0.1)
        release_writer.set()
        assert reader_in.wait(2)
        w.join()
        r.join()

    def test_waiting_writer_blocks_new_readers(self) -> None:
        lock = RWLock()
        first_reader_in = threading.Event()
        release_first = threading.Event()
        order: list[str] = []

        def first_reader() -> None:
            with lock.read_locked():
                first_reader_in.set()
                release_first.wait(2)

        def writer() -> None:
            with lock.write_locked():
                order.append("writer")

        def late_reader() -> None:
            with lock.read_locked():
                order.append("reader")

        r1 = threading.Thread(target=first_reader)
        r1.start()
        assert first_reader_in.wait(2)
        w = threading.Thread(target=writer)
        w.start()
        time.sleep(0.05)
        r2 = threading.Thread(target=late_reader)
        r2.start()
        time.sleep(0.05)

        assert order == []
        release_first.set()
        for t in (r1, w, r2):
            t.join(2)
        assert order == ["writer", "reader"]

    def test_released_after_exception(self) -> None:
        lock = RWLock()
        with pytest.raises(RuntimeError):
            with lock.write_locked():
                raise RuntimeError("boom")
        with lock.read_locked():
            pass
