"""
MirrorCache - on-disk copy of every downloaded image.

Responsibilities:
    - Validate the configured mirror directory up front
    - Name mirrored files with a running counter (0_img.jpg, 1_img.jpg, ...)
    - Write each download atomically (temp -> rename)
    - Clean the directory on open/close when cleanup is enabled

Only plain files are removed; unexpected subdirectories are reported and
left alone.
"""
import os
import threading
from pathlib import Path
from typing import Optional, Union

from core.constants import MIRROR_FILE_TEMPLATE
from core.logging.logger import get_logger
from core.logging.tags import TAG_WWW
from engine.errors import ConfigError

logger = get_logger(__name__)


class MirrorCache:
    """Owns the mirror directory for one www source."""

    def __init__(self, cache_dir: Union[str, Path], cleanup: bool = True):
        self.cache_dir = Path(cache_dir)
        if not self.cache_dir.is_dir():
            raise ConfigError(f"Can't open www_cache directory '{self.cache_dir}'")
        self.cleanup = cleanup
        self._counter = 0
        self._lock = threading.Lock()

        if self.cleanup:
            self.clean()

    @property
    def written(self) -> int:
        return self._counter

    def next_path(self) -> Path:
        """Reserve the file name for the next download."""
        with self._lock:
            index = self._counter
            self._counter += 1
        return self.cache_dir / MIRROR_FILE_TEMPLATE.format(index=index)

    def write(self, data: bytes) -> Optional[Path]:
        """Store one download. Returns the file path or None on I/O failure.

        A failed mirror write never fails the fetch itself.
        """
        target = self.next_path()
        temp = target.with_name(f".tmp.{target.name}")
        try:
            with open(temp, "wb") as f:
                f.write(data)
            os.replace(temp, target)
        except OSError as e:
            logger.warning(f"{TAG_WWW} Fail to copy image to disk '{target}': {e}")
            self._safe_unlink(temp)
            return None
        return target

    def clean(self) -> int:
        """Remove every plain file in the mirror directory.

        Returns:
            Number of files removed
        """
        removed = 0
        try:
            entries = list(self.cache_dir.iterdir())
        except OSError as e:
            logger.warning(f"{TAG_WWW} Can't list cache path '{self.cache_dir}': {e}")
            return 0

        for entry in entries:
            if entry.is_dir():
                logger.warning(
                    f"{TAG_WWW} Found unexpected directory '{entry}' in cache path '{self.cache_dir}'"
                )
                continue
            try:
                entry.unlink()
                removed += 1
            except OSError as e:
                logger.warning(f"{TAG_WWW} Failed to clean cache file '{entry}': {e}")

        if removed:
            logger.info(f"{TAG_WWW} Cleaned {removed} files from {self.cache_dir}")
        return removed

    def close(self) -> None:
        if self.cleanup:
            self.clean()

    @staticmethod
    def _safe_unlink(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            pass
