"""
Version Cleanup

Removes files that a previous release shipped but the current release no
longer contains. Obsolete files are inferred by diffing the two releases'
archive listings; no record of what was actually installed is kept.

A run is gated by a completion marker (the last version cleaned) held in a
SettingsStore, so it happens once per version. Failures while listing,
downloading or diffing leave the marker untouched and the run is retried on
the next launch. Individual delete failures are logged and do not prevent the
marker from being written.
"""

import os
import zipfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import requests

from melonkit.constants import (
    CLEANUP_SCRATCH_DIR_NAME,
    CURRENT_ARCHIVE_TEMPLATE,
    DEFAULT_CLEANUP_REPO,
    PREVIOUS_ARCHIVE_TEMPLATE,
    ZIP_EXTENSION,
)
from melonkit.exceptions import MelonkitError, PathValidationError, PerFileDeleteError
from melonkit.log_utils import logger
from melonkit.utils import strip_version_prefix, versions_match

from .diff import compute_obsolete_entries
from .files import (
    list_archive_entries,
    safe_join,
    scratch_archive_name,
    scratch_directory,
)
from .github_source import GithubReleaseSource
from .integrity import write_payload
from .interfaces import (
    CleanupReport,
    CleanupState,
    DeletionOutcome,
    Downloader,
    Pathish,
    Release,
    ReleaseSource,
    SettingsStore,
)
from .network import HttpDownloader


def should_run(current_version: Optional[str], last_completed_version: Optional[str]) -> bool:
    """
    Decide whether cleanup still has to run for `current_version`.

    Returns:
        bool: False when both versions are equal after stripping a leading "v"
        and ignoring case, True otherwise.
    """
    return not versions_match(current_version, last_completed_version)


def delete_obsolete_files(
    install_dir: Pathish, obsolete: Iterable[str]
) -> List[DeletionOutcome]:
    """
    Delete each obsolete path that exists as a file under `install_dir`.

    Missing paths are skipped without an outcome. A failure to delete one path
    is logged and recorded, and processing continues with the next path. Paths
    that resolve outside `install_dir` are never touched.

    Returns:
        List[DeletionOutcome]: One outcome per attempted path, in sorted path order.
    """
    outcomes: List[DeletionOutcome] = []
    for rel_path in sorted(obsolete):
        try:
            full_path = safe_join(install_dir, rel_path)
        except PathValidationError as e:
            logger.warning("Refusing to delete %s: %s", rel_path, e)
            outcomes.append(DeletionOutcome(rel_path, deleted=False, error=str(e)))
            continue

        try:
            if not full_path.is_file():
                logger.debug("Obsolete file not present: %s", rel_path)
                continue
            os.remove(full_path)
        except OSError as e:
            error = PerFileDeleteError(
                f"Failed to delete obsolete file {rel_path}",
                path=str(full_path),
                details=str(e),
            )
            logger.error(str(error))
            outcomes.append(DeletionOutcome(rel_path, deleted=False, error=str(error)))
            continue

        logger.info("Deleted obsolete file: %s", rel_path)
        outcomes.append(DeletionOutcome(rel_path, deleted=True))

    return outcomes


def _find_release(releases: List[Release], version: str) -> Optional[Release]:
    return next((r for r in releases if versions_match(r.tag_name, version)), None)


def _find_previous_release(releases: List[Release], version: str) -> Optional[Release]:
    return next((r for r in releases if not versions_match(r.tag_name, version)), None)


class VersionCleanup:
    """
    Runs the once-per-version cleanup of files left behind by the previous release.

    The release source, downloader and settings store are injected so the
    pipeline can be exercised with fakes.
    """

    def __init__(
        self,
        release_source: ReleaseSource,
        downloader: Downloader,
        settings_store: SettingsStore,
        scratch_root: Pathish,
        owner: str,
        repo: str,
    ):
        self.release_source = release_source
        self.downloader = downloader
        self.settings_store = settings_store
        self.scratch_root = Path(scratch_root)
        self.owner = owner
        self.repo = repo

    @classmethod
    def from_config(
        cls, config: Dict[str, Any], settings_store: SettingsStore
    ) -> "VersionCleanup":
        repo_slug = config.get("CLEANUP_REPO") or DEFAULT_CLEANUP_REPO
        owner, _, repo = str(repo_slug).partition("/")
        return cls(
            GithubReleaseSource(config),
            HttpDownloader(config),
            settings_store,
            config["SCRATCH_DIR"],
            owner,
            repo,
        )

    def run_if_needed(
        self, current_version: str, install_dir: Optional[Pathish]
    ) -> CleanupReport:
        """
        Clean up obsolete files of the previous release unless already done for this version.

        Never raises. The report's state is SKIPPED when the marker already
        matches, FAILED when anything before the delete pass failed (marker not
        written), and MARKED_COMPLETE otherwise.
        """
        current = strip_version_prefix(current_version)
        report = CleanupReport(current_version=current)

        try:
            done_version = self.settings_store.get_cleanup_done_version()
        except (MelonkitError, OSError) as e:
            return self._fail(report, e)
        if not should_run(current, done_version):
            logger.debug("Version cleanup already done for %s", current)
            report.state = CleanupState.SKIPPED
            return report

        logger.info(f"Starting version cleanup for {current}")
        try:
            self._run(report, install_dir)
            self.settings_store.set_cleanup_done_version(current)
        except (
            MelonkitError,
            requests.RequestException,
            zipfile.BadZipFile,
            OSError,
        ) as e:
            return self._fail(report, e)
        except Exception as e:  # noqa: BLE001
            logger.exception("Unexpected error during version cleanup")
            return self._fail(report, e)

        report.state = CleanupState.MARKED_COMPLETE
        if report.failed:
            logger.warning(
                f"Version cleanup for {current} finished with {len(report.failed)} failed deletions"
            )
        logger.info(f"Version cleanup complete for {current}")
        return report

    def _fail(self, report: CleanupReport, error: Exception) -> CleanupReport:
        logger.error(
            f"Version cleanup failed during {report.state.value}: {error}. "
            "It will be retried on next launch."
        )
        report.state = CleanupState.FAILED
        report.error_message = str(error)
        return report

    def _run(self, report: CleanupReport, install_dir: Optional[Pathish]) -> None:
        current = report.current_version or ""
        if not install_dir or not os.path.isdir(str(install_dir)):
            logger.info("Install directory unavailable; skipping version cleanup")
            return

        report.state = CleanupState.FETCHING_RELEASES
        releases = self.release_source.list_releases(
            self.owner, self.repo, force_refresh=True
        )
        if not releases:
            logger.info(f"No releases found for {self.owner}/{self.repo}")
            return

        previous = _find_previous_release(releases, current)
        if previous is None:
            logger.info("No previous release to compare against")
            return

        prev_version = strip_version_prefix(previous.tag_name)
        report.previous_version = prev_version
        logger.info(f"Comparing {prev_version} -> {current}")

        prev_asset = previous.find_asset(name_endswith=ZIP_EXTENSION)
        if prev_asset is None:
            logger.info(f"No zip asset found for previous release {prev_version}")
            return

        current_release = _find_release(releases, current)
        current_asset = (
            current_release.find_asset(name_endswith=ZIP_EXTENSION)
            if current_release
            else None
        )
        if current_asset is None:
            logger.info(f"No zip asset found for current release {current}")
            return

        with scratch_directory(self.scratch_root, CLEANUP_SCRATCH_DIR_NAME) as scratch:
            report.state = CleanupState.DOWNLOADING
            logger.info(f"Downloading {prev_version} archive")
            prev_path = write_payload(
                self.downloader.download(prev_asset.download_url),
                scratch / scratch_archive_name(PREVIOUS_ARCHIVE_TEMPLATE, prev_version),
            )
            logger.info(f"Downloading {current} archive")
            curr_path = write_payload(
                self.downloader.download(current_asset.download_url),
                scratch / scratch_archive_name(CURRENT_ARCHIVE_TEMPLATE, current),
            )

            report.state = CleanupState.DIFFING
            report.obsolete = compute_obsolete_entries(
                list_archive_entries(prev_path), list_archive_entries(curr_path)
            )
        logger.info(f"Found {len(report.obsolete)} obsolete file(s)")

        report.state = CleanupState.DELETING
        report.outcomes = delete_obsolete_files(install_dir, report.obsolete)
