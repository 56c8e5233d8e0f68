"""
GitHub Release Source

This module provides a ReleaseSource backed by the GitHub releases API, with a
session-scoped in-memory cache per repository.
"""

import json
import threading
from typing import Any, Dict, List, Optional, Tuple

import requests  # type: ignore[import-untyped]

from melonkit.constants import GITHUB_API_BASE, GITHUB_MAX_PER_PAGE
from melonkit.exceptions import HTTPError, NetworkError
from melonkit.log_utils import logger
from melonkit.utils import make_github_api_request

from .interfaces import Asset, Release, ReleaseSource


class GithubReleaseSource(ReleaseSource):
    """
    Lists releases of GitHub repositories.

    Listings are fetched once per repository and kept for the lifetime of the
    instance; `force_refresh=True` bypasses the cached copy. Transport failures
    raise instead of returning an empty list so callers can tell "no releases"
    apart from "could not ask".

    Usage:
        source = GithubReleaseSource(config=config)
        releases = source.list_releases("LavaGang", "MelonLoader")
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize the GitHub release source.

        Parameters:
            config (Optional[Dict[str, Any]]): Configuration dictionary; `GITHUB_TOKEN`
                and `ALLOW_ENV_TOKEN` are honoured.
        """
        self.config = config or {}
        self._session_cache: Dict[Tuple[str, str], List[Release]] = {}
        self._cache_lock = threading.Lock()

    @staticmethod
    def build_releases_url(owner: str, repo: str) -> str:
        return f"{GITHUB_API_BASE}/{owner}/{repo}/releases"

    def list_releases(
        self, owner: str, repo: str, force_refresh: bool = False
    ) -> List[Release]:
        """
        Return the releases of `owner/repo`, newest first.

        Raises:
            HTTPError: When GitHub answers with an error status.
            NetworkError: On transport failures or an unparsable response.
        """
        key = (owner.lower(), repo.lower())
        if not force_refresh:
            with self._cache_lock:
                cached = self._session_cache.get(key)
            if cached is not None:
                logger.debug("Using session-cached releases for %s/%s", owner, repo)
                return list(cached)

        releases_data = self._fetch_from_api(owner, repo)
        releases = parse_releases(releases_data, f"{owner}/{repo}")

        with self._cache_lock:
            self._session_cache[key] = releases
        logger.debug("Fetched %d releases for %s/%s", len(releases), owner, repo)
        return list(releases)

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._session_cache.clear()

    def _fetch_from_api(self, owner: str, repo: str) -> List[Dict[str, Any]]:
        """
        Fetch raw releases data directly from the GitHub API.

        Raises:
            HTTPError: For HTTP error responses.
            NetworkError: For transport errors or a non-list JSON payload.
        """
        url = self.build_releases_url(owner, repo)
        logger.info(f"Fetching releases from {url}")
        try:
            response = make_github_api_request(
                url,
                self.config.get("GITHUB_TOKEN"),
                allow_env_token=self.config.get("ALLOW_ENV_TOKEN", True),
                params={"per_page": GITHUB_MAX_PER_PAGE},
            )
            data = response.json()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise HTTPError(
                f"GitHub API error listing releases for {owner}/{repo}",
                status_code=status,
                url=url,
                details=str(e),
            ) from e
        except (requests.RequestException, json.JSONDecodeError, ValueError) as e:
            raise NetworkError(
                f"Could not list releases for {owner}/{repo}", url=url, details=str(e)
            ) from e

        if not isinstance(data, list):
            raise NetworkError(
                "Invalid releases data received from GitHub API",
                url=url,
                details=f"expected list, got {type(data).__name__}",
            )
        return data


def parse_releases(releases_data: List[Any], source_name: str) -> List[Release]:
    """Parse raw release dicts, skipping malformed entries with a warning."""
    releases: List[Release] = []
    for release_data in releases_data:
        if not isinstance(release_data, dict):
            logger.warning(
                "Skipping malformed release entry from %s: expected dict, got %s",
                source_name,
                type(release_data).__name__,
            )
            continue
        release = create_release_from_github_data(release_data)
        if release is not None:
            releases.append(release)
    return releases


def create_asset_from_github_data(asset_data: Any, tag_name: str) -> Optional[Asset]:
    """
    Create an Asset from GitHub API asset data.

    Returns:
        Optional[Asset]: The asset, or None when the name or URL is missing/invalid.
    """
    if not isinstance(asset_data, dict):
        logger.warning("Skipping malformed asset for release %s", tag_name)
        return None
    asset_name = asset_data.get("name")
    if not isinstance(asset_name, str) or not asset_name.strip():
        logger.warning("Skipping asset with invalid name for release %s", tag_name)
        return None
    download_url = asset_data.get("browser_download_url")
    if not isinstance(download_url, str) or not download_url:
        logger.warning(
            "Skipping asset %s without download URL for release %s",
            asset_name,
            tag_name,
        )
        return None
    try:
        asset_size = int(asset_data.get("size") or 0)
    except (TypeError, ValueError):
        asset_size = 0
    return Asset(
        name=asset_name,
        download_url=download_url,
        size=asset_size,
        content_type=asset_data.get("content_type"),
    )


def create_release_from_github_data(release_data: Dict[str, Any]) -> Optional[Release]:
    """
    Create a Release object from GitHub API release data.

    Releases without a usable tag are skipped. Assets keep the order GitHub
    listed them in; malformed assets are dropped individually.

    Returns:
        Optional[Release]: A Release object populated with assets, or None
            when the tag is missing/invalid.
    """
    tag_name = release_data.get("tag_name")
    if not isinstance(tag_name, str) or not tag_name.strip():
        logger.warning("Skipping release with missing or invalid tag_name")
        return None

    release = Release(
        tag_name=tag_name,
        name=release_data.get("name"),
        prerelease=bool(release_data.get("prerelease", False)),
        published_at=release_data.get("published_at"),
    )

    assets_data = release_data.get("assets")
    if not isinstance(assets_data, list):
        logger.warning("Release %s has invalid assets field", tag_name)
        return release

    for asset_data in assets_data:
        asset = create_asset_from_github_data(asset_data, tag_name)
        if asset is not None:
            release.assets.append(asset)

    return release
