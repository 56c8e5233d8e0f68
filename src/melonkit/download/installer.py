"""
Loader Installation

ArchiveInstaller extracts a validated zip payload onto a game directory and
verifies the result; LoaderInstaller wires release selection and downloading
in front of it.
"""

import os
import shutil
import zipfile
import zlib
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import requests

from melonkit.constants import (
    LOADER_ARCHIVE_TEMPLATE,
    LOADER_ASSET_NAME,
    LOADER_MARKER_DIR,
    LOADER_MARKER_FILES,
    LOADER_REPO_NAME,
    LOADER_REPO_OWNER,
    LOADER_USER_DIRS,
)
from melonkit.exceptions import (
    AssetNotFoundError,
    EmptyArchiveError,
    ExtractionError,
    InstallVerificationError,
    MelonkitError,
    PathValidationError,
    ReleaseNotFoundError,
)
from melonkit.log_utils import logger
from melonkit.utils import strip_version_prefix, versions_match

from .files import remove_file_quietly, safe_join, scratch_archive_name
from .github_source import GithubReleaseSource
from .integrity import write_payload
from .interfaces import (
    Asset,
    Downloader,
    InstallResult,
    Pathish,
    ProgressSink,
    Release,
    ReleaseSource,
)
from .network import HttpDownloader


class ArchiveInstaller:
    """
    Extracts zip payloads onto an existing directory tree.

    Extraction is all-or-nothing: the first entry that fails aborts the install.
    Files already present under the target but absent from the archive are left
    alone. Success requires both a clean extraction and the marker paths the
    payload is known to produce.
    """

    def __init__(
        self,
        marker_dir: str = LOADER_MARKER_DIR,
        marker_files: Sequence[str] = LOADER_MARKER_FILES,
    ):
        self.marker_dir = marker_dir
        self.marker_files = tuple(marker_files)

    def install(
        self, payload: bytes, target_dir: Pathish, scratch_path: Pathish
    ) -> InstallResult:
        """
        Validate `payload`, stage it at `scratch_path`, extract it and verify markers.

        The staged archive is removed before returning, whatever the outcome.

        Returns:
            InstallResult: `extracted` and `verified` report the two stages separately.
        """
        result = InstallResult(success=False)
        try:
            archive_path = write_payload(payload, scratch_path)
            logger.info(f"Archive verified: {len(payload)} bytes")
            result.extracted_files = self.extract_all(archive_path, target_dir)
            result.extracted = True
            self.check_installation(target_dir)
            result.verified = True
            result.success = True
        except InstallVerificationError as e:
            logger.error(f"Installation verification failed: {e}")
            result.error_message = str(e)
        except (MelonkitError, zipfile.BadZipFile, OSError) as e:
            logger.error(f"Installation failed: {e}")
            result.error_message = str(e)
        finally:
            remove_file_quietly(scratch_path)
        return result

    def extract_all(self, archive_path: Pathish, target_dir: Pathish) -> List[Path]:
        """
        Extract every file entry of `archive_path` under `target_dir` in archive order.

        Parent directories are created as needed and existing files are
        overwritten; with duplicate entry paths the last one wins.

        Returns:
            List[Path]: Destination paths, in extraction order.

        Raises:
            zipfile.BadZipFile: If the archive cannot be opened.
            EmptyArchiveError: If the archive has no entries.
            ExtractionError: If any entry cannot be extracted, including corrupt,
                encrypted or unsupported-compression entries.
        """
        extracted: List[Path] = []
        with zipfile.ZipFile(str(archive_path), "r") as zf:
            infos = zf.infolist()
            logger.info(f"Opened archive with {len(infos)} entries")
            if not infos:
                raise EmptyArchiveError(
                    "Archive contains no entries", archive_path=str(archive_path)
                )

            for info in infos:
                if info.is_dir() or not os.path.basename(
                    info.filename.replace("\\", "/")
                ):
                    logger.debug("Skipping directory entry %s", info.filename)
                    continue

                try:
                    destination = safe_join(target_dir, info.filename)
                    destination.parent.mkdir(parents=True, exist_ok=True)
                    with zf.open(info) as source, open(destination, "wb") as target:
                        shutil.copyfileobj(source, target)
                except (
                    PathValidationError,
                    zipfile.BadZipFile,
                    zlib.error,
                    RuntimeError,
                    NotImplementedError,
                    EOFError,
                    OSError,
                ) as e:
                    logger.error(f"Failed to extract {info.filename}: {e}")
                    raise ExtractionError(
                        f"Failed to extract {info.filename}",
                        entry=info.filename,
                        archive_path=str(archive_path),
                        details=str(e),
                    ) from e

                extracted.append(destination)
                logger.debug(f"Extracted {info.filename} to {destination}")

        return extracted

    def verify_installation(self, target_dir: Pathish) -> bool:
        """Return True when the marker directory and at least one marker file exist."""
        target = Path(target_dir)
        has_marker_dir = (target / self.marker_dir).is_dir()
        has_marker_file = any(
            (target / name).is_file() for name in self.marker_files
        )
        logger.debug(
            "Marker directory %s exists: %s; marker file present: %s",
            self.marker_dir,
            has_marker_dir,
            has_marker_file,
        )
        return has_marker_dir and has_marker_file

    def check_installation(self, target_dir: Pathish) -> None:
        """
        Raises:
            InstallVerificationError: If verify_installation() fails.
        """
        if not self.verify_installation(target_dir):
            raise InstallVerificationError(
                "Expected loader files are missing after extraction",
                details=f"need {self.marker_dir}/ and one of {', '.join(self.marker_files)}",
            )


class LoaderInstaller:
    """
    Installs a chosen loader release into a game directory.

    Pipeline: release source -> asset selection -> download -> ArchiveInstaller.
    Public methods never raise; failures are logged and returned as results.
    """

    def __init__(
        self,
        release_source: ReleaseSource,
        downloader: Downloader,
        scratch_dir: Pathish,
        archive_installer: Optional[ArchiveInstaller] = None,
        owner: str = LOADER_REPO_OWNER,
        repo: str = LOADER_REPO_NAME,
        asset_name: str = LOADER_ASSET_NAME,
    ):
        self.release_source = release_source
        self.downloader = downloader
        self.scratch_dir = Path(scratch_dir)
        self.archive_installer = archive_installer or ArchiveInstaller()
        self.owner = owner
        self.repo = repo
        self.asset_name = asset_name

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "LoaderInstaller":
        return cls(
            GithubReleaseSource(config),
            HttpDownloader(config),
            config["SCRATCH_DIR"],
        )

    def get_releases(self) -> List[Release]:
        """Return the loader releases, or an empty list when they cannot be fetched."""
        try:
            return self.release_source.list_releases(self.owner, self.repo)
        except (MelonkitError, requests.RequestException) as e:
            logger.error(f"Could not fetch {self.owner}/{self.repo} releases: {e}")
            return []

    def select_release(self, releases: List[Release], version: str) -> Release:
        """
        Raises:
            ReleaseNotFoundError: If no release tag matches `version`.
        """
        for release in releases:
            if release.tag_name == version or versions_match(release.tag_name, version):
                return release
        raise ReleaseNotFoundError(
            f"{self.repo} version {version} not found", version=version
        )

    def select_asset(self, release: Release) -> Asset:
        """
        Raises:
            AssetNotFoundError: If the release has no asset containing `asset_name`.
        """
        asset = release.find_asset(name_contains=self.asset_name)
        if asset is None:
            raise AssetNotFoundError(
                f"No {self.asset_name} asset in release {release.tag_name}",
                release_tag=release.tag_name,
                pattern=self.asset_name,
            )
        return asset

    def install_version(
        self,
        game_dir: Pathish,
        version: str,
        progress: Optional[ProgressSink] = None,
    ) -> InstallResult:
        """
        Download and install loader `version` into `game_dir`.

        Returns:
            InstallResult: Failed results carry an error message instead of raising.
        """
        logger.info(f"Installing {self.repo} {version}")
        logger.info(f"Game root directory: {game_dir}")
        try:
            releases = self.release_source.list_releases(self.owner, self.repo)
            release = self.select_release(releases, version)
            asset = self.select_asset(release)

            payload = self.downloader.download(asset.download_url, progress)
            logger.info(f"Download completed: {len(payload or b'')} bytes")

            archive_name = scratch_archive_name(
                LOADER_ARCHIVE_TEMPLATE, strip_version_prefix(release.tag_name)
            )
            result = self.archive_installer.install(
                payload, game_dir, self.scratch_dir / archive_name
            )
            result.release_tag = release.tag_name
        except (MelonkitError, requests.RequestException, OSError) as e:
            logger.error(f"Could not install {self.repo} {version}: {e}")
            return InstallResult(success=False, error_message=str(e))

        if result.success:
            logger.info(f"{self.repo} {release.tag_name} installed")
        return result

    def is_installed(self, game_dir: Pathish) -> bool:
        """Return True when `game_dir` holds the loader's marker paths."""
        if not game_dir or not os.path.isdir(str(game_dir)):
            return False
        try:
            return self.archive_installer.verify_installation(game_dir)
        except OSError as e:
            logger.error(f"Error checking loader installation: {e}")
            return False

    def are_directories_created(self, game_dir: Pathish) -> bool:
        """
        Return True once the loader has created its user directories.

        The loader creates these on the game's first launch after install.
        """
        if not game_dir:
            return False
        try:
            return all(
                (Path(game_dir) / name).is_dir() for name in LOADER_USER_DIRS
            )
        except OSError as e:
            logger.error(f"Error checking loader directories: {e}")
            return False
