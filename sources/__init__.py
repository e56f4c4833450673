"""Image sources for the prefetcher."""

from .base_provider import FetchProvider, FetchedImage, ImageSourceType
from .mirror_cache import MirrorCache
from .www_source import WWWImageSource

__all__ = ['FetchProvider', 'FetchedImage', 'ImageSourceType', 'MirrorCache', 'WWWImageSource']
