"""Tests for the ring cache."""
import pytest

from engine.errors import ConfigError, MisuseError
from engine.ring_cache import RingCache, RingIndex, release_image
from tests._prefetch_test_utils import FakeImage


@pytest.fixture
def images():
    return {name: FakeImage(name) for name in "ABCDEFG"}


def test_ring_index_wraps():
    """Test modular cursor arithmetic."""
    idx = RingIndex(3)
    assert idx.next(2) == 0
    assert idx.prev(0) == 2
    assert idx.distance(2, 1) == 2
    assert idx.distance(1, 1) == 0


@pytest.mark.parametrize("capacity", [-1, 0, 1])
def test_rejects_unusable_capacity(capacity):
    """Test capacity must hold the current image plus one more."""
    with pytest.raises(ConfigError):
        RingCache(capacity)


def test_empty_cache():
    """Test a fresh cache has nothing to show or navigate."""
    cache = RingCache(3)

    assert cache.is_empty()
    assert cache.current() is None
    assert cache.peek_next() is None
    assert cache.step_forward() is None
    assert cache.step_back() is None
    assert cache.can_insert()
    assert len(cache) == 0


def test_insert_and_step_forward(images):
    """Test inserted images become reachable in order."""
    cache = RingCache(3)

    assert cache.insert(images["A"]) is None
    assert cache.current() is images["A"]
    # Newest image is current: nothing to move to
    assert cache.step_forward() is None

    cache.insert(images["B"])
    assert cache.occupied_count() == 2
    assert cache.peek_next() is images["B"]
    assert cache.step_forward() is images["B"]
    assert cache.current() is images["B"]
    assert cache.occupied_count() == 1
    assert cache.history_count() == 1


def test_insert_evicts_oldest_history(images):
    """Test wraparound overwrites only the oldest history image."""
    cache = RingCache(3)
    cache.insert(images["A"])
    cache.insert(images["B"])
    cache.step_forward()
    cache.insert(images["C"])

    evicted = cache.insert(images["D"])

    assert evicted is images["A"]
    assert cache.current() is images["B"]
    assert cache.occupied_count() == 3
    assert cache.history_count() == 0
    # Full ring: the cursors coincide
    assert cache.read_cursor == cache.write_cursor


def test_insert_refuses_to_overwrite_unseen(images):
    """Test a ring full of unseen images rejects inserts."""
    cache = RingCache(2)
    cache.insert(images["A"])
    cache.insert(images["B"])

    assert not cache.can_insert()
    with pytest.raises(MisuseError):
        cache.insert(images["C"])
    assert cache.current() is images["A"]


def test_insert_none_rejected():
    """Test empty handles are never stored."""
    cache = RingCache(2)
    with pytest.raises(MisuseError):
        cache.insert(None)


def test_step_back_bounded_by_history(images):
    """Test retreating stops at the oldest live image."""
    cache = RingCache(3)
    for name in "AB":
        cache.insert(images[name])
    cache.step_forward()
    cache.insert(images["C"])
    cache.step_forward()
    cache.insert(images["D"])  # evicts A

    assert cache.current() is images["C"]
    assert cache.step_back() is images["B"]
    assert cache.step_back() is None
    assert cache.step_back() is None
    assert cache.current() is images["B"]


def test_back_then_forward_returns_same_image(images):
    """Test retreat followed by advance lands on the starting image."""
    cache = RingCache(4)
    for name in "ABC":
        cache.insert(images[name])
    cache.step_forward()
    cache.step_forward()
    start = cache.current()

    cache.step_back()
    assert cache.step_forward() is start


def test_step_forward_at_newest_is_idempotent(images):
    """Test repeated forward steps at the newest image change nothing."""
    cache = RingCache(3)
    cache.insert(images["A"])
    read = cache.read_cursor

    for _ in range(3):
        assert cache.step_forward() is None
    assert cache.read_cursor == read
    assert cache.current() is images["A"]


def test_long_walk_keeps_counts_consistent(images):
    """Test counters stay within capacity over many wraparounds."""
    cache = RingCache(3)
    evicted = []
    cache.insert(FakeImage("0"))
    for i in range(1, 20):
        old = cache.insert(FakeImage(str(i)))
        if old is not None:
            evicted.append(old)
        assert cache.step_forward().name == str(i)
        assert cache.occupied_count() + cache.history_count() <= cache.capacity

    assert [img.name for img in evicted] == [str(i) for i in range(len(evicted))]
    assert cache.history_count() == 2


def test_teardown_returns_live_handles(images):
    """Test teardown hands back every stored image and resets."""
    cache = RingCache(3)
    for name in "AB":
        cache.insert(images[name])
    cache.step_forward()
    cache.insert(images["C"])

    handles = cache.teardown()

    assert {img.name for img in handles} == {"A", "B", "C"}
    assert cache.is_empty()
    assert cache.current() is None
    assert cache.teardown() == []


def test_release_image_calls_close(images):
    """Test the default release hook closes handles and ignores plain objects."""
    release_image(images["A"])
    assert images["A"].close_count == 1
    release_image(object())
