"""
Image prefetcher: ring cache + background worker + navigation API.

Keeps a list of images ready to be shown, together with a short history of
previously shown images that can be scrolled back to. The consumer (a UI
event loop, the headless walker, tests) only ever talks to ImagePrefetcher;
the worker only ever talks to the fetch provider and the ring cache.

Navigation never blocks on the network: when the next image is not there
yet, advance() returns None and the caller decides whether to show the
placeholder, retry later or wait with wait_for_cached().
"""
from __future__ import annotations

import threading
from enum import Enum, auto
from typing import Any, Callable, Optional

from core.constants import DEFAULT_CACHE_LIMIT, DEFAULT_PREFETCH_N, DEFAULT_REFILL_INTERVAL_SEC
from core.logging.logger import get_logger
from core.logging.tags import TAG_FALLBACK, TAG_LIFECYCLE, TAG_PREFETCH
from engine.errors import ConfigError, MisuseError
from engine.prefetch_worker import PrefetchWorker, WorkerState
from engine.ring_cache import RingCache, release_image
from sources.base_provider import FetchProvider

logger = get_logger(__name__)


class PrefetcherState(Enum):
    """Prefetcher lifecycle states."""
    CREATED = auto()
    RUNNING = auto()
    STOPPED = auto()


class ImagePrefetcher:
    """
    Bounded prefetch cache over a remote image stream.

    Features:
    - Fixed-capacity ring of decoded images with O(1) insert/evict
    - Background worker keeping ``prefetch_depth`` images ready
    - Forward/backward navigation bounded by what is still cached
    - Cooperative shutdown releasing every cached image exactly once
    """

    def __init__(
        self,
        provider: FetchProvider,
        capacity: int = DEFAULT_CACHE_LIMIT,
        prefetch_depth: int = DEFAULT_PREFETCH_N,
        refill_interval: Optional[float] = DEFAULT_REFILL_INTERVAL_SEC,
        release: Callable[[Any], None] = release_image,
        placeholder: Any = None,
    ):
        """
        Initialize the prefetcher. Nothing is fetched until start().

        Args:
            provider: Fetch provider producing one image per call
            capacity: Maximum number of images to cache before expiring old ones
            prefetch_depth: Number of images (current one included) to keep
                ready; clamped to ``capacity`` with a warning
            refill_interval: Seconds between periodic worker re-checks, so
                failed fetches are retried without user input. None disables.
            release: Called once for every image leaving the cache
            placeholder: Returned by current() while nothing is cached. Not
                owned by the prefetcher.

        Raises:
            ConfigError: capacity or prefetch_depth is not usable
        """
        if provider is None:
            raise ConfigError("Prefetcher requires a fetch provider")
        if prefetch_depth <= 0:
            raise ConfigError(f"Can't use prefetcher with prefetch count = {prefetch_depth}")
        self._cache = RingCache(capacity, release=release)
        if prefetch_depth > capacity:
            logger.warning(
                f"{TAG_PREFETCH} Prefetcher has prefetch count = {prefetch_depth} and max cache "
                f"size = {capacity}. Will set max prefetch to cache size."
            )
            prefetch_depth = capacity
        if prefetch_depth == 1:
            logger.warning(
                f"{TAG_PREFETCH} Prefetch count = 1 only keeps the current image; "
                "advance() will not find a next image until the count is raised"
            )

        self.capacity = capacity
        self.prefetch_depth = prefetch_depth
        self.placeholder = placeholder
        self._provider = provider
        self._release = release

        self._cond = threading.Condition(threading.Lock())
        self._lifecycle_lock = threading.Lock()
        self._state = PrefetcherState.CREATED
        self._worker = PrefetchWorker(
            self._cache,
            self._cond,
            provider,
            prefetch_depth,
            refill_interval=refill_interval,
            release=release,
        )

        logger.info(
            f"{TAG_PREFETCH} ImagePrefetcher initialized (capacity={capacity}, "
            f"prefetch_depth={prefetch_depth}, source={provider})"
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> PrefetcherState:
        return self._state

    @property
    def worker_state(self) -> WorkerState:
        return self._worker.state

    def start(self) -> None:
        """Spawn the prefetch worker.

        Raises:
            MisuseError: Already started or already stopped
        """
        with self._lifecycle_lock:
            if self._state != PrefetcherState.CREATED:
                raise MisuseError(
                    f"BUG: image prefetcher started twice or after stop (state={self._state.name})"
                )
            self._worker.start()
            self._state = PrefetcherState.RUNNING
        logger.info(f"{TAG_LIFECYCLE} Prefetcher started")

    def stop(self) -> None:
        """Cooperative shutdown.

        Blocks until the worker has exited (an in-flight fetch completes
        first unless the provider supports cancel()), then releases every
        cached image. Calling stop() again is a no-op.
        """
        with self._lifecycle_lock:
            if self._state == PrefetcherState.STOPPED:
                return
            was_running = self._state == PrefetcherState.RUNNING
            with self._cond:
                self._state = PrefetcherState.STOPPED

            if was_running:
                self._worker.request_stop()
                try:
                    self._provider.cancel()
                except Exception:
                    logger.exception(f"{TAG_PREFETCH} Fetch provider cancel() failed")
                self._worker.join()

            with self._cond:
                handles = self._cache.teardown()
                self._cond.notify_all()

        for handle in handles:
            try:
                self._release(handle)
            except Exception:
                logger.exception(f"{TAG_PREFETCH} Failed to release image {handle!r}")

        stats = self._worker.stats
        logger.info(
            f"{TAG_LIFECYCLE} Prefetcher stopped (released={len(handles)}, fetched={stats.fetched}, "
            f"failed={stats.failed}, evicted={stats.evicted})"
        )

    def __enter__(self) -> "ImagePrefetcher":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _check_usable_locked(self, operation: str) -> None:
        if self._state == PrefetcherState.STOPPED:
            raise MisuseError(f"{operation}() called on a stopped prefetcher")

    def current(self) -> Any:
        """Image at the read cursor, or the placeholder if nothing is cached yet."""
        with self._cond:
            self._check_usable_locked("current")
            image = self._cache.current()
        return image if image is not None else self.placeholder

    def advance(self) -> Optional[Any]:
        """
        Move to the next image.

        The worker is woken in every case; it may or may not need to fetch.

        Returns:
            The new current image, or None if the cache is empty or the
            current image is the newest one fetched (cursor unchanged)
        """
        with self._cond:
            self._check_usable_locked("advance")
            image = self._cache.step_forward()
            where = self._cache.describe()
        self._worker.wake()

        if image is None:
            logger.debug(f"{TAG_FALLBACK} Reached last available image, waiting for more cache {where}")
        return image

    def retreat(self) -> Optional[Any]:
        """
        Move back one image in the history.

        Never wakes the worker: moving backward never requires a fetch.

        Returns:
            The previous image, or None when the oldest live image is
            already current
        """
        with self._cond:
            self._check_usable_locked("retreat")
            image = self._cache.step_back()
            where = self._cache.describe()

        if image is None:
            logger.debug(f"{TAG_FALLBACK} No more images available, reached oldest image in history {where}")
        return image

    def cached_count(self) -> int:
        """Number of cached images from the current one onward (current included)."""
        with self._cond:
            self._check_usable_locked("cached_count")
            return self._cache.occupied_count()

    def history_count(self) -> int:
        """Number of images retreat() can still step back through."""
        with self._cond:
            self._check_usable_locked("history_count")
            return self._cache.history_count()

    def wait_for_cached(self, minimum: int = 1, timeout: Optional[float] = None) -> bool:
        """
        Block until at least ``minimum`` images are cached.

        Caller-level helper for the first display; navigation itself never
        blocks. ``minimum`` is capped at the prefetch depth since the worker
        never fetches further ahead.

        Returns:
            True if the images are ready, False on timeout, stop, or when
            the worker has died and no more images will arrive
        """
        if minimum > self.prefetch_depth:
            logger.debug(
                f"{TAG_PREFETCH} wait_for_cached({minimum}) capped at prefetch depth {self.prefetch_depth}"
            )
            minimum = self.prefetch_depth
        with self._cond:
            self._check_usable_locked("wait_for_cached")
            self._cond.wait_for(
                lambda: self._state == PrefetcherState.STOPPED
                or self._worker.state == WorkerState.STOPPED
                or self._cache.occupied_count() >= minimum,
                timeout=timeout,
            )
            if self._state == PrefetcherState.STOPPED:
                return False
            if self._cache.occupied_count() >= minimum:
                return True
            if self._worker.state == WorkerState.STOPPED:
                logger.warning(
                    f"{TAG_FALLBACK} Prefetch worker is gone, giving up waiting for {minimum} images"
                )
            return False

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def get_stats(self) -> dict:
        """
        Get prefetcher statistics.

        A ``cached`` count stuck at zero while ``failed`` keeps growing means
        the source is unreachable.
        """
        with self._cond:
            stats = self._worker.stats
            return {
                'state': self._state.name,
                'worker_state': self._worker.state.name,
                'worker_crashed': self._worker.crashed,
                'capacity': self.capacity,
                'prefetch_depth': self.prefetch_depth,
                'cached': self._cache.occupied_count(),
                'history': self._cache.history_count(),
                'read_cursor': self._cache.read_cursor,
                'write_cursor': self._cache.write_cursor,
                'fetched': stats.fetched,
                'failed': stats.failed,
                'evicted': stats.evicted,
                'deferred': stats.deferred,
            }

    def __repr__(self) -> str:
        return (
            f"ImagePrefetcher(state={self._state.name}, capacity={self.capacity}, "
            f"prefetch_depth={self.prefetch_depth})"
        )
