"""
melonkit Download Subsystem

This package holds the loader installer and the version cleanup pipelines,
split into small components that depend on each other only through the
interfaces module.

Core Components:
- interfaces: Data model and collaborator interfaces
- github_source: GitHub release listing
- network: HTTP downloader
- integrity: Payload integrity checks
- installer: Archive extraction and loader installation
- diff: Archive listing comparison
- cleanup: Obsolete file removal gated per version
- files: File operations and utilities
"""

from .cleanup import VersionCleanup, delete_obsolete_files, should_run
from .diff import compute_obsolete_entries, normalize_entry_path
from .files import list_archive_entries, scratch_directory
from .github_source import GithubReleaseSource
from .installer import ArchiveInstaller, LoaderInstaller
from .integrity import validate, validate_payload, write_payload
from .interfaces import (
    Asset,
    CleanupReport,
    CleanupState,
    DeletionOutcome,
    Downloader,
    DownloadProgress,
    InstallResult,
    Release,
    ReleaseSource,
    SettingsStore,
)
from .network import HttpDownloader

__all__ = [
    # Interfaces
    "Asset",
    "Release",
    "DownloadProgress",
    "InstallResult",
    "DeletionOutcome",
    "CleanupState",
    "CleanupReport",
    "ReleaseSource",
    "Downloader",
    "SettingsStore",
    # Collaborators
    "GithubReleaseSource",
    "HttpDownloader",
    # Integrity
    "validate",
    "validate_payload",
    "write_payload",
    # Installation
    "ArchiveInstaller",
    "LoaderInstaller",
    # Diff and cleanup
    "normalize_entry_path",
    "compute_obsolete_entries",
    "list_archive_entries",
    "scratch_directory",
    "delete_obsolete_files",
    "should_run",
    "VersionCleanup",
]
