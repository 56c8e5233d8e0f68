"""
HTTP Downloader

Fetches release assets into memory, optionally routing GitHub download URLs
through a configured mirror prefix and falling back to the direct URL when the
mirror fails.
"""

from typing import Any, Dict, Optional
from urllib.parse import urlparse

from melonkit.constants import GITHUB_HOSTS
from melonkit.exceptions import DownloadError
from melonkit.log_utils import logger
from melonkit.utils import download_bytes_with_retry

from .interfaces import Downloader, DownloadProgress, ProgressSink

PROXIED_PATH_MARKERS = ("/archive/", "/releases/download/", "/blob/", "/raw/")


def apply_github_proxy(url: str, proxy_prefix: Optional[str]) -> str:
    """
    Prefix a GitHub download URL with `proxy_prefix`.

    Only URLs on GitHub hosts whose path points at an archive, release download,
    blob or raw file are rewritten; everything else is returned unchanged.
    """
    if not proxy_prefix:
        return url

    parsed = urlparse(url)
    if (parsed.hostname or "").lower() not in GITHUB_HOSTS:
        logger.debug("URL is not a GitHub URL, not proxying: %s", url)
        return url
    if not any(marker in parsed.path for marker in PROXIED_PATH_MARKERS):
        return url

    return f"{proxy_prefix.rstrip('/')}/{url}"


class HttpDownloader(Downloader):
    """Downloader backed by a retrying requests session."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}

    @property
    def proxy_prefix(self) -> Optional[str]:
        value = self.config.get("GITHUB_PROXY")
        return str(value).strip() if value else None

    def download(self, url: str, progress: Optional[ProgressSink] = None) -> bytes:
        """
        Download `url` into memory, reporting DownloadProgress to `progress`.

        Raises:
            DownloadError: When the direct download fails (after the mirror, if any).
        """
        callback = None
        if progress is not None:

            def callback(received: int, total: Optional[int], speed: float) -> None:
                progress(DownloadProgress(received, total, speed))

        final_url = apply_github_proxy(url, self.proxy_prefix)
        logger.info(f"Downloading {final_url}")

        if final_url != url:
            try:
                return download_bytes_with_retry(final_url, callback)
            except DownloadError as e:
                logger.warning(
                    f"Download via GitHub proxy failed ({e}); retrying {url} directly"
                )

        return download_bytes_with_retry(url, callback)
