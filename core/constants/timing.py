"""Timing constants for the prefetch viewer.

All timing values are in seconds.
"""

# =============================================================================
# Prefetch Worker
# =============================================================================

DEFAULT_REFILL_INTERVAL_SEC = 5.0
"""Periodic nudge: the idle worker re-checks the cache this often."""

STOP_WAIT_LOG_INTERVAL_SEC = 5.0
"""While stop() waits for an in-flight fetch, log a notice this often."""

# =============================================================================
# Network
# =============================================================================

DEFAULT_TIMEOUT_SECONDS = 30
"""Request timeout for remote image downloads."""

# =============================================================================
# Viewer
# =============================================================================

DEFAULT_SLIDESHOW_INTERVAL_SEC = 3.0
"""Headless walker: time between forward steps."""

DEFAULT_READY_TIMEOUT_SEC = 30.0
"""Headless walker: how long to wait for the first images."""
