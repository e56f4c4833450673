"""Engine module: ring cache, prefetch worker and navigation.

The settings-driven ``engine.image_list`` facade is imported directly so the
sources package can depend on ``engine.errors`` without a cycle.
"""

from .errors import ConfigError, FetchError, MisuseError, PrefetchError
from .image_prefetcher import ImagePrefetcher, PrefetcherState
from .prefetch_worker import PrefetchWorker, WorkerState
from .ring_cache import RingCache, release_image

__all__ = [
    'ConfigError', 'FetchError', 'MisuseError', 'PrefetchError',
    'ImagePrefetcher', 'PrefetcherState',
    'PrefetchWorker', 'WorkerState',
    'RingCache', 'release_image',
]
