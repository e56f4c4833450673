"""
Image list facade for the viewer.

Wires settings, the www source, the placeholder image and the prefetcher
together and exposes the list-style navigation the viewer binds keys to.
Only forward/backward file jumps exist for a remote stream; directory and
first/last jumps are accepted and refused.
"""
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from core.logging.logger import get_logger
from core.logging.tags import TAG_FALLBACK, TAG_LIFECYCLE
from engine.errors import ConfigError
from engine.image_prefetcher import ImagePrefetcher
from sources.base_provider import FetchProvider
from sources.www_source import WWWImageSource
from utils.image_loader import ImageLoader

if TYPE_CHECKING:
    from core.settings import SettingsManager

logger = get_logger(__name__)


class ListJump(Enum):
    """Movement directions."""
    FIRST_FILE = "first_file"
    LAST_FILE = "last_file"
    NEXT_FILE = "next_file"
    PREV_FILE = "prev_file"
    NEXT_DIR = "next_dir"
    PREV_DIR = "prev_dir"


@dataclass(frozen=True)
class ImageEntry:
    """Current entry of the list."""
    index: int           # Position relative to the first image shown
    image: Any           # Cached image, placeholder, or None
    is_placeholder: bool


class ImageList:
    """Settings-driven owner of one prefetcher and its source."""

    def __init__(self, settings: "SettingsManager", provider: Optional[FetchProvider] = None):
        """
        Args:
            settings: Source of the ``list.*`` keys
            provider: Fetch provider to use instead of the configured www
                source (embedding applications, tests)

        Raises:
            ConfigError: Missing URL, unusable cache directory, bad sizes
        """
        self._settings = settings
        source = settings.get_str('list.source', 'www')
        if provider is None and source != 'www':
            raise ConfigError(f"Unsupported list.source '{source}'")

        self._owns_provider = provider is None
        self._provider = provider if provider is not None else WWWImageSource(
            settings.get_str('list.www_url'),
            mirror_dir=settings.get_str('list.www_cache') or None,
            cleanup=settings.get_bool('list.www_cleanup_cache', True),
            timeout=settings.get_float('list.www_timeout', 30.0),
        )
        self._no_image = self._load_placeholder(settings.get_str('list.no_image_asset'))
        try:
            self._prefetcher = ImagePrefetcher(
                self._provider,
                capacity=settings.get_int('list.www_cache_limit'),
                prefetch_depth=settings.get_int('list.www_prefetch_n'),
                refill_interval=settings.get_float('list.www_refill_interval', 5.0),
                placeholder=self._no_image,
            )
        except ConfigError:
            self._close_owned()
            raise
        self._index = 0

    @staticmethod
    def _load_placeholder(path: str) -> Optional[Any]:
        if not path:
            return None
        img = ImageLoader.load_file(path)
        if img is None:
            logger.warning(f"{TAG_FALLBACK} Could not load no-image asset '{path}', using none")
        return img

    @property
    def prefetcher(self) -> ImagePrefetcher:
        return self._prefetcher

    @property
    def placeholder(self) -> Optional[Any]:
        return self._no_image

    def open(self) -> None:
        """Start prefetching."""
        self._prefetcher.start()
        logger.info(f"{TAG_LIFECYCLE} Image list opened ({self._provider})")

    def close(self) -> None:
        """Stop prefetching and release the source and placeholder."""
        self._prefetcher.stop()
        self._close_owned()
        logger.info(f"{TAG_LIFECYCLE} Image list closed")

    def _close_owned(self) -> None:
        if self._owns_provider:
            self._provider.close()
        if self._no_image is not None:
            self._no_image.close()
            self._no_image = None

    def __enter__(self) -> "ImageList":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def wait_until_ready(self, minimum: int = 1, timeout: Optional[float] = None) -> bool:
        """Block until ``minimum`` images are cached or ``timeout`` expires."""
        return self._prefetcher.wait_for_cached(minimum, timeout)

    def current(self) -> ImageEntry:
        image = self._prefetcher.current()
        is_placeholder = image is None or image is self._no_image
        return ImageEntry(index=self._index, image=image, is_placeholder=is_placeholder)

    def jump(self, jump: ListJump) -> bool:
        """
        Move through the image list.

        Returns:
            False if the iterator can not be moved; the current image stays
        """
        if jump == ListJump.NEXT_FILE:
            moved = self._prefetcher.advance() is not None
            if moved:
                self._index += 1
            return moved
        if jump == ListJump.PREV_FILE:
            moved = self._prefetcher.retreat() is not None
            if moved:
                self._index -= 1
            return moved
        logger.debug(f"Jump {jump.value} is not supported by a remote image stream")
        return False

    def get_stats(self) -> dict:
        stats = self._prefetcher.get_stats()
        stats['index'] = self._index
        stats['source'] = self._provider.get_source_info()
        return stats
