"""
Core Interfaces for the melonkit Download Subsystem

This module defines the data structures shared by the installer and cleanup
pipelines and the collaborator interfaces they are parameterized over.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Set, Union

Pathish = Union[str, Path]


@dataclass
class Asset:
    """Represents a downloadable asset attached to a release."""

    name: str
    """The filename of the asset"""

    download_url: str
    """Direct URL to download the asset"""

    size: int = 0
    """File size in bytes as reported by the release source"""

    content_type: Optional[str] = None
    """MIME type of the asset"""


@dataclass
class Release:
    """Represents a tagged release that owns an ordered list of assets."""

    tag_name: str
    """The release tag/version identifier (e.g., 'v0.6.1')"""

    name: Optional[str] = None
    """Human-readable release title"""

    prerelease: bool = False
    """Whether this is a prerelease version"""

    published_at: Optional[str] = None
    """ISO 8601 timestamp when the release was published"""

    assets: List[Asset] = field(default_factory=list)
    """Downloadable assets, in the order the source listed them"""

    def find_asset(
        self,
        name_contains: Optional[str] = None,
        name_endswith: Optional[str] = None,
    ) -> Optional[Asset]:
        """
        Return the first asset whose name matches the given substring and/or suffix.

        Suffix matching is case-insensitive, substring matching is exact.
        """
        for asset in self.assets:
            if name_contains is not None and name_contains not in asset.name:
                continue
            if name_endswith is not None and not asset.name.lower().endswith(
                name_endswith.lower()
            ):
                continue
            return asset
        return None


@dataclass
class DownloadProgress:
    """Incremental progress notification for a running download."""

    bytes_received: int
    total_bytes: Optional[int] = None
    bytes_per_second: float = 0.0

    @property
    def percent(self) -> Optional[float]:
        if not self.total_bytes:
            return None
        return min(100.0, self.bytes_received * 100.0 / self.total_bytes)


ProgressSink = Callable[[DownloadProgress], None]


@dataclass
class InstallResult:
    """Outcome of an archive installation."""

    success: bool
    """Whether extraction and post-install verification both succeeded"""

    extracted: bool = False
    """Whether every archive entry was written without error"""

    verified: bool = False
    """Whether the expected marker paths exist after extraction"""

    release_tag: Optional[str] = None
    """The release that was installed, when known"""

    extracted_files: List[Path] = field(default_factory=list)
    """Destination paths written during extraction"""

    error_message: Optional[str] = None
    """Error message (if failed)"""


@dataclass
class DeletionOutcome:
    """Result of attempting to delete one obsolete path."""

    path: str
    deleted: bool
    error: Optional[str] = None


class CleanupState(Enum):
    """States of a single version-cleanup invocation."""

    NOT_STARTED = "not_started"
    FETCHING_RELEASES = "fetching_releases"
    DOWNLOADING = "downloading"
    DIFFING = "diffing"
    DELETING = "deleting"
    MARKED_COMPLETE = "marked_complete"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class CleanupReport:
    """Summary of a version-cleanup invocation."""

    state: CleanupState = CleanupState.NOT_STARTED
    current_version: Optional[str] = None
    previous_version: Optional[str] = None
    obsolete: Set[str] = field(default_factory=set)
    outcomes: List[DeletionOutcome] = field(default_factory=list)
    error_message: Optional[str] = None

    @property
    def deleted(self) -> List[str]:
        return [outcome.path for outcome in self.outcomes if outcome.deleted]

    @property
    def failed(self) -> List[DeletionOutcome]:
        return [outcome for outcome in self.outcomes if outcome.error is not None]

    @property
    def marker_updated(self) -> bool:
        return self.state is CleanupState.MARKED_COMPLETE


class ReleaseSource(ABC):
    """
    Abstract base class for release sources.

    A ReleaseSource lists the releases published for an owner/repo pair,
    newest first.
    """

    @abstractmethod
    def list_releases(
        self, owner: str, repo: str, force_refresh: bool = False
    ) -> List[Release]:
        """
        Retrieve the releases published for a repository.

        Parameters:
            owner (str): Repository owner.
            repo (str): Repository name.
            force_refresh (bool): Bypass any cached listing.

        Returns:
            List[Release]: Releases in source order (newest first).

        Raises:
            DownloadError: When the listing cannot be fetched.
        """


class Downloader(ABC):
    """Abstract base class for fetching raw asset bytes."""

    @abstractmethod
    def download(self, url: str, progress: Optional[ProgressSink] = None) -> bytes:
        """
        Download the resource at `url` into memory.

        Parameters:
            url (str): URL of the resource.
            progress (Optional[ProgressSink]): Receives DownloadProgress notifications.

        Returns:
            bytes: The full payload; truncated transfers raise instead.

        Raises:
            DownloadError: On any transport failure.
        """


class SettingsStore(ABC):
    """Key-value store holding the version-cleanup completion marker."""

    @abstractmethod
    def get_cleanup_done_version(self) -> Optional[str]:
        """Return the last version for which cleanup ran to completion, if any."""

    @abstractmethod
    def set_cleanup_done_version(self, version: str) -> None:
        """Persist `version` as the completed-cleanup marker."""
