"""
WWW image source - one remote image per request.

Every fetch() issues a GET against a fixed URL (typically an endpoint that
serves a different picture on each call), decodes the body with Pillow and
optionally mirrors the raw bytes into a cache directory.

Designed for sequential use from the prefetch worker thread; cancel() may be
called from any thread to make a blocked request fail fast on shutdown.
"""
import threading
from pathlib import Path
from typing import Optional, Union

import requests

from core.constants import DEFAULT_TIMEOUT_SECONDS, DOWNLOAD_CHUNK_SIZE
from core.logging.logger import get_logger, is_verbose_logging
from core.logging.tags import TAG_WWW
from engine.errors import ConfigError, FetchError
from sources.base_provider import FetchedImage, FetchProvider, ImageSourceType
from sources.mirror_cache import MirrorCache
from utils.image_loader import ImageLoader
from versioning import APP_NAME, APP_VERSION

logger = get_logger(__name__)


class WWWImageSource(FetchProvider):
    """Fetch provider backed by ``requests``."""

    def __init__(
        self,
        url: str,
        mirror_dir: Optional[Union[str, Path]] = None,
        cleanup: bool = True,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            url: Endpoint returning one encoded image per GET
            mirror_dir: Existing directory to copy every download into
            cleanup: Empty the mirror directory on open and close
            timeout: Per-request timeout in seconds
            session: Pre-configured session (tests, custom auth)
        """
        if not url:
            raise ConfigError("Missing www_url config entry; can't use www-source without URL")
        super().__init__(url, ImageSourceType.WWW)
        self.url = url
        self.timeout = timeout
        self.mirror = MirrorCache(mirror_dir, cleanup=cleanup) if mirror_dir else None

        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", f"{APP_NAME}/{APP_VERSION}")
        self._cancelled = threading.Event()
        self._sequence = 0

        logger.info(
            f"{TAG_WWW} Source ready url={url} mirror={self.mirror.cache_dir if self.mirror else None} "
            f"timeout={timeout}s"
        )

    @property
    def fetched_count(self) -> int:
        return self._sequence

    def fetch(self) -> FetchedImage:
        if self._cancelled.is_set():
            raise FetchError("Download cancelled", url=self.url)

        data = self._download()

        mirror_path = self.mirror.write(data) if self.mirror else None

        img = ImageLoader.decode_bytes(data, name=self.url)
        if img is None:
            raise FetchError(
                f"Successfully downloaded image from '{self.url}', but failed to decode it",
                url=self.url,
            )

        fetched = FetchedImage(
            source_type=self.source_type,
            sequence=self._sequence,
            image=img,
            url=self.url,
            mirror_path=mirror_path,
            file_size=len(data),
            format=img.format,
        )
        self._sequence += 1
        if is_verbose_logging():
            logger.debug(f"{TAG_WWW} Downloaded {fetched} ({len(data)} bytes)")
        return fetched

    def _download(self) -> bytes:
        try:
            with self._session.get(self.url, timeout=self.timeout, stream=True) as resp:
                resp.raise_for_status()
                content_type = resp.headers.get("Content-Type", "")
                chunks = []
                for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if self._cancelled.is_set():
                        raise FetchError("Download cancelled", url=self.url)
                    if chunk:
                        chunks.append(chunk)
        except requests.RequestException as e:
            if self._cancelled.is_set():
                raise FetchError("Download cancelled", url=self.url) from e
            raise FetchError(f"Fail to download from {self.url}: {e}", url=self.url) from e

        if content_type and "image" not in content_type:
            logger.debug(f"{TAG_WWW} Unexpected Content-Type {content_type!r} from {self.url}")
        return b"".join(chunks)

    def cancel(self) -> None:
        """Fail the in-flight and all later fetches."""
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        self._session.close()
        logger.debug(f"{TAG_WWW} Cancelled downloads from {self.url}")

    def close(self) -> None:
        self.cancel()
        if self.mirror is not None:
            self.mirror.close()

    def get_source_info(self) -> dict:
        info = super().get_source_info()
        info.update({
            'url': self.url,
            'fetched': self._sequence,
            'mirror_dir': str(self.mirror.cache_dir) if self.mirror else None,
        })
        return info
