"""Standard logging tags for consistent log filtering.

Usage:
    from core.logging.tags import TAG_PREFETCH, TAG_WORKER
    logger.info(f"{TAG_PREFETCH} Started (capacity={capacity})")
"""

# =============================================================================
# Components
# =============================================================================

TAG_PREFETCH = "[PREFETCH]"
"""Prefetcher lifecycle and navigation."""

TAG_WORKER = "[WORKER]"
"""Prefetch worker thread."""

TAG_CACHE = "[CACHE]"
"""Ring cache operations (insert, evict, teardown)."""

TAG_WWW = "[WWW]"
"""Remote image downloads and the on-disk mirror."""

TAG_IMAGE = "[IMAGE]"
"""Image decoding."""

TAG_SETTINGS = "[SETTINGS]"
"""Configuration loading and overrides."""

# =============================================================================
# Status Tags
# =============================================================================

TAG_FALLBACK = "[FALLBACK]"
"""Fallback operations when primary path fails."""

TAG_LIFECYCLE = "[LIFECYCLE]"
"""Start/stop of long-lived components."""

__all__ = [
    "TAG_PREFETCH",
    "TAG_WORKER",
    "TAG_CACHE",
    "TAG_WWW",
    "TAG_IMAGE",
    "TAG_SETTINGS",
    "TAG_FALLBACK",
    "TAG_LIFECYCLE",
]
