"""
Base fetch provider interface for the prefetcher.

Defines the abstract interface every image source must implement and the
handle type produced by the bundled sources.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from core.logging.logger import get_logger

logger = get_logger(__name__)


class ImageSourceType(Enum):
    """Type of image source."""
    WWW = "www"
    CUSTOM = "custom"


@dataclass
class FetchedImage:
    """
    One decoded image plus what is known about where it came from.

    Owns the decoded raster: ``close()`` releases it, after which ``image``
    is None. The prefetcher calls ``close()`` exactly once when the image
    is evicted or the cache is torn down.
    """
    # Required fields
    source_type: ImageSourceType
    sequence: int        # Position in the fetch stream, starting at 0
    image: Any           # Decoded raster (PIL.Image.Image for bundled sources)

    # Optional metadata
    url: Optional[str] = None
    mirror_path: Optional[Path] = None
    file_size: Optional[int] = None
    format: Optional[str] = None
    fetched_date: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if self.image is None:
            raise ValueError("FetchedImage must wrap a decoded image")
        if self.sequence < 0:
            raise ValueError("FetchedImage sequence must be non-negative")

    @property
    def width(self) -> Optional[int]:
        return getattr(self.image, "width", None)

    @property
    def height(self) -> Optional[int]:
        return getattr(self.image, "height", None)

    @property
    def closed(self) -> bool:
        return self.image is None

    def close(self) -> None:
        """Release the decoded raster. Safe to call more than once."""
        image, self.image = self.image, None
        if image is not None:
            close = getattr(image, "close", None)
            if callable(close):
                close()

    def get_display_name(self) -> str:
        """Get a human-readable name for this image."""
        if self.mirror_path:
            return self.mirror_path.name
        if self.url:
            return f"{self.url.rstrip('/').split('/')[-1]}#{self.sequence}"
        return f"<mem>#{self.sequence}"

    def __str__(self) -> str:
        name = self.get_display_name()
        if self.width and self.height:
            return f"{name} ({self.width}x{self.height}) [{self.source_type.value}]"
        return f"{name} [{self.source_type.value}]"


class FetchProvider(ABC):
    """
    Abstract base class for fetch providers.

    ``fetch()`` is called repeatedly from the single prefetch worker thread
    and must never call back into the prefetcher.
    """

    def __init__(self, source_id: str, source_type: ImageSourceType):
        """
        Args:
            source_id: Identifier for logging (URL, name, ...)
            source_type: Type of source
        """
        self.source_id = source_id
        self.source_type = source_type
        self._logger = logger.getChild(source_type.value)

    @abstractmethod
    def fetch(self) -> Any:
        """
        Produce the next image of the stream, blocking as long as needed.

        Ownership of the returned handle moves to the caller.

        Raises:
            FetchError: This image could not be produced. The worker will
                try again on its next cycle.
        """

    def cancel(self) -> None:
        """Interrupt a blocking ``fetch()`` during shutdown, when supported."""

    def close(self) -> None:
        """Release provider resources (sessions, mirror files)."""

    def get_source_info(self) -> dict:
        return {
            'source_id': self.source_id,
            'source_type': self.source_type.value,
        }

    def __str__(self) -> str:
        return f"{self.source_type.value}:{self.source_id}"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} source_id={self.source_id}>"
