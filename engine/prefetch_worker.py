"""Prefetch worker: keeps the ring cache topped up from a fetch provider.

One dedicated background thread per prefetcher. The provider call is the
only long blocking operation and always runs outside the cache lock; every
cache mutation happens with the shared condition held, and evicted images
are released only after it has been dropped.

State Machine:
- IDLE: blocked on the shared condition until woken by forward navigation,
  the periodic nudge (refill_interval) or shutdown
- FETCHING: fetching images until the cache holds prefetch_depth images
  from the read cursor onward
- SHUTTING_DOWN: stop requested, the in-flight fetch (if any) completes
- STOPPED: thread exited
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, List, Optional

from core.constants import DEFAULT_REFILL_INTERVAL_SEC, STOP_WAIT_LOG_INTERVAL_SEC
from core.logging.logger import get_logger, is_verbose_logging
from core.logging.tags import TAG_FALLBACK, TAG_WORKER
from engine.errors import FetchError, MisuseError
from engine.ring_cache import RingCache
from sources.base_provider import FetchProvider

logger = get_logger(__name__)


class WorkerState(Enum):
    """Prefetch worker lifecycle states."""
    IDLE = auto()
    FETCHING = auto()
    SHUTTING_DOWN = auto()
    STOPPED = auto()


@dataclass
class WorkerStats:
    """Counters exposed for stuck detection and diagnostics."""
    fetched: int = 0
    failed: int = 0
    evicted: int = 0
    bursts: int = 0
    deferred: int = 0


class PrefetchWorker:
    """Background fetch loop bound to one RingCache and one condition."""

    def __init__(
        self,
        cache: RingCache,
        condition: threading.Condition,
        provider: FetchProvider,
        prefetch_depth: int,
        refill_interval: float = DEFAULT_REFILL_INTERVAL_SEC,
        release: Optional[Callable[[Any], None]] = None,
    ):
        """
        Args:
            cache: Ring cache shared with the navigator
            condition: Guards ``cache``; also used for wakeups
            provider: Source of new images
            prefetch_depth: Images to keep ready from the read cursor onward
            refill_interval: Seconds between periodic re-checks while idle.
                None disables the nudge (wake only on navigation).
            release: Release hook for evicted images (defaults to the
                cache's own hook)
        """
        self._cache = cache
        self._cond = condition
        self._provider = provider
        self.prefetch_depth = prefetch_depth
        self.refill_interval = refill_interval
        self._release = release or cache.release

        self._state = WorkerState.IDLE
        self._stop_requested = False
        self._wake_pending = False
        # Image fetched while the navigator had stepped back far enough that
        # no slot was evictable; installed first on the next cycle.
        self._pending: Optional[Any] = None
        self._thread: Optional[threading.Thread] = None
        self._crashed = False
        # Mutated only with the condition held
        self.stats = WorkerStats()

    # ------------------------------------------------------------------
    # Control (called from the consumer thread)
    # ------------------------------------------------------------------

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def crashed(self) -> bool:
        """True once the loop has died on an unexpected error."""
        return self._crashed

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._thread is not None:
            raise MisuseError("Prefetch worker started twice")
        self._thread = threading.Thread(
            target=self._run,
            name="PrefetchWorker",
            daemon=True,
        )
        self._thread.start()

    def wake(self) -> None:
        """Ask the worker to re-check the cache."""
        with self._cond:
            self._wake_pending = True
            self._cond.notify_all()

    def request_stop(self) -> None:
        """Set the shutdown flag and wake the worker. Does not wait."""
        with self._cond:
            if self._stop_requested:
                return
            self._stop_requested = True
            if self._state != WorkerState.STOPPED:
                self._state = WorkerState.SHUTTING_DOWN
            self._cond.notify_all()

    def join(self, log_interval: float = STOP_WAIT_LOG_INTERVAL_SEC) -> None:
        """Block until the worker thread has exited.

        There is no overall timeout: an in-flight fetch always completes
        first. A notice is logged while waiting so a hanging provider is
        visible.
        """
        if self._thread is None:
            return
        while self._thread.is_alive():
            self._thread.join(timeout=log_interval)
            if self._thread.is_alive():
                logger.warning(f"{TAG_WORKER} Still waiting for in-flight fetch to finish before exit")

    # ------------------------------------------------------------------
    # Worker thread
    # ------------------------------------------------------------------

    def _run(self) -> None:
        logger.debug(
            f"{TAG_WORKER} Loop started (prefetch_depth={self.prefetch_depth}, "
            f"capacity={self._cache.capacity})"
        )
        try:
            while True:
                self._fetch_burst()

                with self._cond:
                    if self._stop_requested:
                        break
                    self._state = WorkerState.IDLE
                    self._cond.wait_for(
                        lambda: self._wake_pending or self._stop_requested,
                        timeout=self.refill_interval,
                    )
                    self._wake_pending = False
                    if self._stop_requested:
                        break
        except Exception:
            logger.exception(f"{TAG_FALLBACK} Prefetch loop crashed, no more images will be fetched")
            with self._cond:
                self._crashed = True
        finally:
            with self._cond:
                pending, self._pending = self._pending, None
                self._state = WorkerState.STOPPED
                self._cond.notify_all()
            self._release_all([pending] if pending is not None else [])
            logger.debug(
                f"{TAG_WORKER} Loop exited (fetched={self.stats.fetched}, failed={self.stats.failed}, "
                f"evicted={self.stats.evicted})"
            )

    def _fetch_burst(self) -> None:
        """Fetch until the cache is topped up, a fetch fails or stop is requested."""
        with self._cond:
            self.stats.bursts += 1
        while True:
            evicted: List[Any] = []
            with self._cond:
                if self._stop_requested:
                    return
                if self._pending is not None:
                    if not self._cache.can_insert():
                        return
                    evicted.append(self._install_locked(self._pending))
                    self._pending = None
                need = self.prefetch_depth - self._cache.occupied_count()
                if need > 0:
                    self._state = WorkerState.FETCHING
            self._release_all(evicted)
            if need <= 0:
                return

            if is_verbose_logging():
                logger.debug(f"{TAG_WORKER} Fetching 1 of {need} missing images")

            image = self._fetch_one()
            if image is None:
                # Skip this slot for now; the next cycle retries
                return

            discard: List[Any] = []
            with self._cond:
                if self._stop_requested:
                    discard.append(image)
                elif self._cache.can_insert():
                    discard.append(self._install_locked(image))
                else:
                    self._pending = image
                    self.stats.deferred += 1
                    logger.debug(
                        f"{TAG_WORKER} No evictable slot ({self._cache.describe()}), holding fetched image"
                    )
            self._release_all(discard)

    def _fetch_one(self) -> Optional[Any]:
        try:
            image = self._provider.fetch()
        except FetchError as e:
            self._count_failure()
            logger.warning(f"{TAG_WORKER} Fetch failed, will retry next cycle: {e}")
            return None
        except Exception as e:
            self._count_failure()
            logger.exception(f"{TAG_WORKER} Fetch provider raised unexpectedly: {e}")
            return None
        if image is None:
            self._count_failure()
            logger.warning(f"{TAG_WORKER} Fetch provider returned no image, will retry next cycle")
        return image

    def _count_failure(self) -> None:
        with self._cond:
            self.stats.failed += 1

    def _install_locked(self, image: Any) -> Optional[Any]:
        evicted = self._cache.insert(image)
        self.stats.fetched += 1
        if evicted is not None:
            self.stats.evicted += 1
        # Wake anyone blocked in wait_for_cached()
        self._cond.notify_all()
        return evicted

    def _release_all(self, handles: List[Any]) -> None:
        for handle in handles:
            if handle is None:
                continue
            try:
                self._release(handle)
            except Exception:
                logger.exception(f"{TAG_WORKER} Failed to release image {handle!r}")
