"""
Tests for the prefetch worker thread.

The worker is driven directly against a RingCache and a condition, the way
ImagePrefetcher wires it, so refill, retry and shutdown behavior can be
checked without the navigation layer.
"""
import logging
import threading
import time

import pytest

from engine.errors import MisuseError
from engine.prefetch_worker import PrefetchWorker, WorkerState
from engine.ring_cache import RingCache
from tests._prefetch_test_utils import FakeProvider, wait_until


@pytest.fixture
def make_worker():
    """Build workers and make sure every one of them is stopped."""
    created = []

    def _make(provider, capacity=4, depth=2, refill_interval=None):
        cache = RingCache(capacity)
        cond = threading.Condition(threading.Lock())
        worker = PrefetchWorker(cache, cond, provider, depth, refill_interval=refill_interval)
        created.append((worker, provider))
        return worker, cache, cond

    yield _make

    for worker, provider in created:
        if provider.gate is not None:
            provider.gate.set()
        worker.request_stop()
        worker.join(log_interval=0.1)


class TestRefill:
    """Keeping prefetch_depth images ready."""

    def test_fills_up_to_depth_and_stops(self, make_worker, provider):
        """Test the worker fetches exactly prefetch_depth images, then idles."""
        worker, cache, cond = make_worker(provider, capacity=4, depth=2)
        worker.start()

        assert wait_until(lambda: cache.occupied_count() == 2)
        assert wait_until(lambda: worker.state == WorkerState.IDLE)
        assert provider.calls == 2
        assert worker.stats.fetched == 2

    def test_wake_after_advance_refills(self, make_worker, provider):
        """Test moving the read cursor and waking triggers one more fetch."""
        worker, cache, cond = make_worker(provider, capacity=4, depth=2)
        worker.start()
        assert wait_until(lambda: cache.occupied_count() == 2)

        with cond:
            cache.step_forward()
        worker.wake()

        assert wait_until(lambda: provider.calls == 3 and cache.occupied_count() == 2)

    def test_idle_worker_does_not_fetch_without_wake(self, make_worker, provider):
        """Test a topped-up cache with no nudge leaves the provider alone."""
        worker, cache, cond = make_worker(provider, capacity=3, depth=2, refill_interval=0.02)
        worker.start()
        assert wait_until(lambda: cache.occupied_count() == 2)

        # Several nudges pass; nothing is missing so nothing is fetched
        assert not wait_until(lambda: provider.calls > 2, timeout=0.2)


class TestFailures:
    """Fetch failures skip the slot and are retried later."""

    def test_fetch_error_retried_on_next_cycle(self, make_worker):
        """Test a FetchError is counted and the slot filled on a later cycle."""
        provider = FakeProvider(fail_on={0})
        worker, cache, cond = make_worker(provider, depth=2, refill_interval=0.02)
        worker.start()

        assert wait_until(lambda: cache.occupied_count() == 2)
        assert worker.stats.failed == 1
        assert provider.calls == 3
        assert cache.current().name == "A"

    def test_none_result_counts_as_failure(self, make_worker):
        """Test a provider returning None is treated as a failed fetch."""
        provider = FakeProvider(return_none_on={0, 1})
        worker, cache, cond = make_worker(provider, depth=1, refill_interval=0.02)
        worker.start()

        assert wait_until(lambda: cache.occupied_count() == 1)
        assert worker.stats.failed == 2

    def test_unexpected_exception_does_not_kill_worker(self, make_worker):
        """Test an arbitrary provider exception is logged and retried."""

        class FlakyProvider(FakeProvider):
            def fetch(self):
                if self.calls == 0:
                    self.calls += 1
                    raise RuntimeError("boom")
                return super().fetch()

        provider = FlakyProvider()
        worker, cache, cond = make_worker(provider, depth=1, refill_interval=0.02)
        worker.start()

        assert wait_until(lambda: cache.occupied_count() == 1)
        assert worker.is_alive()
        assert worker.stats.failed == 1

    def test_failure_without_nudge_waits_for_wake(self, make_worker):
        """Test a failed burst with no refill interval resumes on the next wake."""
        provider = FakeProvider(fail_on={0})
        worker, cache, cond = make_worker(provider, depth=1, refill_interval=None)
        worker.start()

        assert wait_until(lambda: worker.stats.failed == 1)
        assert not wait_until(lambda: provider.calls > 1, timeout=0.1)

        worker.wake()
        assert wait_until(lambda: cache.occupied_count() == 1)

    def test_failure_counted_under_lock(self, make_worker):
        """Test the failure counter only changes while the condition is held."""
        gate = threading.Event()
        provider = FakeProvider(fail_on={0}, gate=gate)
        worker, cache, cond = make_worker(provider, depth=1)
        worker.start()
        assert wait_until(provider.in_fetch.is_set)

        with cond:
            gate.set()
            assert wait_until(lambda: not provider.in_fetch.is_set())
            time.sleep(0.1)
            assert worker.stats.failed == 0

        assert wait_until(lambda: worker.stats.failed == 1)




class TestFullRing:
    """Fetch completing while no slot can be evicted."""

    def test_fetched_image_held_until_slot_frees(self, make_worker, provider):
        """Test an image fetched into a full ring is installed after the next advance."""
        worker, cache, cond = make_worker(provider, capacity=2, depth=2)
        worker.start()
        assert wait_until(lambda: cache.occupied_count() == 2)

        provider.gate = threading.Event()
        with cond:
            cache.step_forward()
        worker.wake()
        assert wait_until(provider.in_fetch.is_set)

        # Navigator steps back while the fetch is in flight: A and B are both
        # ahead again and nothing may be evicted.
        with cond:
            cache.step_back()
        provider.gate.set()

        assert wait_until(lambda: worker.stats.deferred == 1)
        a, b, c = provider.produced
        assert not a.closed
        with cond:
            assert cache.current() is a

        with cond:
            cache.step_forward()
        worker.wake()

        assert wait_until(lambda: a.closed)
        with cond:
            assert cache.current() is b
            assert cache.peek_next() is c


class TestLifecycle:
    """Start and stop."""

    def test_start_twice_raises(self, make_worker, provider):
        """Test a worker thread is spawned only once."""
        worker, cache, cond = make_worker(provider)
        worker.start()

        with pytest.raises(MisuseError):
            worker.start()

    def test_stop_waits_for_in_flight_fetch(self, make_worker, caplog):
        """Test stop blocks until the blocked fetch returns and drops its result."""
        gate = threading.Event()
        provider = FakeProvider(gate=gate)
        worker, cache, cond = make_worker(provider, depth=2)
        worker.start()
        assert wait_until(provider.in_fetch.is_set)

        worker.request_stop()
        assert worker.state == WorkerState.SHUTTING_DOWN
        timer = threading.Timer(0.3, gate.set)
        timer.start()
        with caplog.at_level(logging.WARNING):
            worker.join(log_interval=0.05)
        timer.join()

        assert not worker.is_alive()
        assert worker.state == WorkerState.STOPPED
        assert "Still waiting" in caplog.text
        # Result of the interrupted fetch is never installed
        assert cache.is_empty()
        assert [img.closed for img in provider.produced] == [True]

    def test_stop_idle_worker(self, make_worker, provider):
        """Test an idle worker exits promptly."""
        worker, cache, cond = make_worker(provider, depth=1)
        worker.start()
        assert wait_until(lambda: cache.occupied_count() == 1)

        worker.request_stop()
        worker.join(log_interval=0.1)

        assert worker.state == WorkerState.STOPPED
        assert provider.calls == 1

    def test_join_without_start(self, make_worker, provider):
        """Test join on a never-started worker returns immediately."""
        worker, cache, cond = make_worker(provider)
        worker.join()
        assert not worker.is_alive()

    def test_loop_crash_stops_worker(self, make_worker, provider, caplog, monkeypatch):
        """Test an unexpected loop error is logged and leaves the worker STOPPED."""
        worker, cache, cond = make_worker(provider)

        def broken_burst():
            raise RuntimeError("ring corrupted")

        monkeypatch.setattr(worker, '_fetch_burst', broken_burst)
        worker.start()

        assert wait_until(lambda: worker.state == WorkerState.STOPPED)
        assert worker.crashed is True
        assert "[FALLBACK] Prefetch loop crashed" in caplog.text
        assert provider.calls == 0
