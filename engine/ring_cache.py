"""
Ring cache for prefetched images.

Fixed-capacity circular buffer of owned image handles with a read cursor
(the image exposed to the viewer) and a write cursor (the next slot the
prefetch worker fills). The cache itself is not locked; ImagePrefetcher
guards every call with its own condition lock.

Layout, walking forward from the read cursor:

    [current][unseen ...][write cursor -> oldest history ...][history]

Slots from the read cursor up to the write cursor are "ahead" (current
image included). Live slots behind the read cursor are "history" and are
the only ones an insert may evict.
"""
from typing import Any, Callable, List, Optional

from core.constants import MIN_RING_CAPACITY
from core.logging.logger import get_logger, is_verbose_logging
from core.logging.tags import TAG_CACHE
from engine.errors import ConfigError, MisuseError

logger = get_logger(__name__)


def release_image(image: Any) -> None:
    """Default release hook: close the handle if it knows how."""
    close = getattr(image, "close", None)
    if callable(close):
        close()


class RingIndex:
    """Modular arithmetic over ``size`` slots."""

    __slots__ = ("size",)

    def __init__(self, size: int):
        self.size = size

    def next(self, index: int) -> int:
        return (index + 1) % self.size

    def prev(self, index: int) -> int:
        return (index - 1) % self.size

    def distance(self, start: int, end: int) -> int:
        """Number of forward steps from ``start`` to ``end``."""
        return (end - start) % self.size


class RingCache:
    """
    Circular buffer of image handles with read/write cursors.

    Invariants:
    - ahead + history <= capacity
    - a slot is empty or holds exactly one live handle
    - the read cursor never moves past the newest inserted image
    - insert never overwrites the current or an unseen image
    """

    def __init__(self, capacity: int, release: Callable[[Any], None] = release_image):
        """
        Args:
            capacity: Number of slots. Must hold the current image plus at
                least one more, so 0 and 1 are rejected.
            release: Called once for every handle leaving the cache.
        """
        if capacity <= 0:
            raise ConfigError(f"Can't use prefetch cache with capacity = {capacity}")
        if capacity < MIN_RING_CAPACITY:
            raise ConfigError(
                f"Prefetch cache capacity must be at least {MIN_RING_CAPACITY} "
                "(current image plus one upcoming image)"
            )
        self.capacity = capacity
        self.release = release
        self._index = RingIndex(capacity)
        self._slots: List[Optional[Any]] = [None] * capacity
        self._read = 0
        self._write = 0
        self._ahead = 0
        self._history = 0

    @property
    def read_cursor(self) -> int:
        return self._read

    @property
    def write_cursor(self) -> int:
        return self._write

    def occupied_count(self) -> int:
        """Images from the read cursor up to the write cursor (current included).

        Equals the circular distance between the cursors except for a full
        ring, where the cursors coincide.
        """
        return self._ahead

    def history_count(self) -> int:
        """Live images behind the read cursor."""
        return self._history

    def is_empty(self) -> bool:
        return self._ahead == 0 and self._history == 0

    def can_insert(self) -> bool:
        """True when the write slot is free or holds a history image."""
        return self._ahead + self._history < self.capacity or self._history > 0

    def insert(self, image: Any) -> Optional[Any]:
        """
        Install ``image`` at the write cursor and advance it.

        Returns:
            The evicted handle (the oldest history image) or None. The
            caller releases it after dropping the lock.

        Raises:
            MisuseError: No slot can be overwritten without evicting the
                current or an unseen image.
        """
        if image is None:
            raise MisuseError("Can't insert an empty image handle")
        if not self.can_insert():
            raise MisuseError(
                f"Ring full: insert at W={self._write} would evict an image "
                f"not yet shown (R={self._read}, ahead={self._ahead})"
            )

        slot = self._write
        evicted = self._slots[slot]
        if evicted is not None:
            self._history -= 1
        self._slots[slot] = image
        self._write = self._index.next(slot)
        self._ahead += 1

        if evicted is not None and is_verbose_logging():
            logger.debug("%s Expire cached image w_old=%d", TAG_CACHE, slot)
        return evicted

    def current(self) -> Optional[Any]:
        """Handle at the read cursor, or None when nothing was fetched yet."""
        if self._ahead == 0:
            return None
        return self._slots[self._read]

    def peek_next(self) -> Optional[Any]:
        if self._ahead < 2:
            return None
        return self._slots[self._index.next(self._read)]

    def step_forward(self) -> Optional[Any]:
        """Move the read cursor to the next unseen image.

        Returns None (cursor unchanged) when the cache is empty or the
        current image is the newest one fetched.
        """
        if self._ahead < 2:
            return None
        self._read = self._index.next(self._read)
        self._ahead -= 1
        self._history += 1
        return self._slots[self._read]

    def step_back(self) -> Optional[Any]:
        """Move the read cursor to the previous live image, or return None."""
        if self._history == 0:
            return None
        prev = self._index.prev(self._read)
        image = self._slots[prev]
        if image is None:
            # history slots are always occupied; a hole means corrupted cursors
            raise MisuseError(f"History slot {prev} is empty (R={self._read}, W={self._write})")
        self._read = prev
        self._history -= 1
        self._ahead += 1
        return image

    def teardown(self) -> List[Any]:
        """Empty every slot and return the handles that were still live."""
        handles = [img for img in self._slots if img is not None]
        self._slots = [None] * self.capacity
        self._read = 0
        self._write = 0
        self._ahead = 0
        self._history = 0
        return handles

    def describe(self) -> str:
        return (
            f"R={self._read} W={self._write} ahead={self._ahead} "
            f"history={self._history} capacity={self.capacity}"
        )

    def __len__(self) -> int:
        return self._ahead + self._history

    def __repr__(self) -> str:
        return f"RingCache({self.describe()})"
