"""Size and capacity constants for the prefetch viewer.

These constants define cache sizes and prefetch depths used throughout
the codebase.
"""

# =============================================================================
# Ring Cache
# =============================================================================

DEFAULT_CACHE_LIMIT = 10
"""Default number of decoded images kept in memory (list.www_cache_limit)."""

DEFAULT_PREFETCH_N = 3
"""Default number of images kept ready from the current one onward."""

MIN_RING_CAPACITY = 2
"""Current image plus at least one upcoming image."""

# =============================================================================
# Downloads
# =============================================================================

DOWNLOAD_CHUNK_SIZE = 8192
"""Bytes per chunk when streaming a remote image."""

MIN_IMAGE_BYTES = 16
"""Bodies shorter than this are rejected before decoding."""

MIRROR_FILE_TEMPLATE = "{index}_img.jpg"
"""Name of each mirrored download inside the cache directory."""
