"""
Error types for the prefetch engine.

ConfigError is fatal at construction time, FetchError is transient and only
ever seen by the prefetch worker, MisuseError flags programming errors such
as starting twice or navigating after stop.
"""


class PrefetchError(Exception):
    """Base class for all prefetch engine errors."""


class ConfigError(PrefetchError):
    """Invalid capacity, prefetch depth or source configuration."""


class FetchError(PrefetchError):
    """A fetch provider failed to produce one image."""

    def __init__(self, message: str, url: str = None):
        super().__init__(message)
        self.url = url


class MisuseError(PrefetchError):
    """The prefetcher was driven in a way its lifecycle does not allow."""
