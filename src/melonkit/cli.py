# src/melonkit/cli.py

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from melonkit import config as melonkit_config
from melonkit import log_utils
from melonkit.download import (
    DownloadProgress,
    LoaderInstaller,
    VersionCleanup,
)
from melonkit.download.interfaces import CleanupState
from melonkit.exceptions import ConfigurationError
from melonkit.utils import get_app_version


def _load_config_or_exit() -> Dict[str, Any]:
    """
    Load the configuration and apply its logging settings.

    Exits with status 1 when the config file exists but cannot be parsed.
    """
    try:
        config = melonkit_config.load_config()
    except ConfigurationError as e:
        log_utils.logger.error(f"Could not load configuration: {e}")
        sys.exit(1)

    if config.get("LOG_LEVEL"):
        log_utils.set_log_level(str(config["LOG_LEVEL"]))
    log_utils.add_file_logging(
        Path(melonkit_config.get_log_dir()), str(config.get("LOG_LEVEL") or "INFO")
    )
    return config


def _require(value: Optional[str], option: str, config_key: str) -> str:
    if not value:
        log_utils.logger.error(
            f"No value for {option}; pass it on the command line or set {config_key} in the config file."
        )
        sys.exit(1)
    return value


def _print_progress(progress: DownloadProgress) -> None:
    received_mb = progress.bytes_received / (1024 * 1024)
    speed_kb = progress.bytes_per_second / 1024
    if progress.percent is not None:
        line = f"Downloading... {progress.percent:.1f}% ({received_mb:.2f} MB, {speed_kb:.0f} KB/s)"
    else:
        line = f"Downloading... {received_mb:.2f} MB ({speed_kb:.0f} KB/s)"
    print(f"\r{line}", end="", flush=True)


def run_releases(config: Dict[str, Any]) -> None:
    installer = LoaderInstaller.from_config(config)
    releases = installer.get_releases()
    if not releases:
        log_utils.logger.error("No loader releases available.")
        sys.exit(1)
    for release in releases:
        suffix = " (prerelease)" if release.prerelease else ""
        print(f"{release.tag_name}{suffix}")


def run_install(config: Dict[str, Any], game_dir: str, version: str) -> None:
    """
    Install loader `version` into `game_dir` and exit non-zero on failure.
    """
    installer = LoaderInstaller.from_config(config)
    result = installer.install_version(game_dir, version, progress=_print_progress)
    print()
    if not result.success:
        stage = "verification" if result.extracted else "installation"
        log_utils.logger.error(f"Loader {stage} failed: {result.error_message}")
        sys.exit(1)
    log_utils.logger.info(
        f"Installed {result.release_tag} ({len(result.extracted_files)} files)"
    )


def run_status(config: Dict[str, Any], game_dir: str) -> None:
    installer = LoaderInstaller.from_config(config)
    installed = installer.is_installed(game_dir)
    print(f"Loader installed: {'yes' if installed else 'no'}")
    if installed:
        created = installer.are_directories_created(game_dir)
        print(f"Loader directories created: {'yes' if created else 'no'}")
        if not created:
            print("Launch the game once to let the loader finish its setup.")


def run_cleanup(
    config: Dict[str, Any],
    install_dir: str,
    current_version: str,
    repo: Optional[str] = None,
) -> None:
    """
    Run the version cleanup gate for `current_version` over `install_dir`.

    Exits with status 1 when the run failed; the marker is left untouched in
    that case so the next run retries.
    """
    if repo:
        config = dict(config, CLEANUP_REPO=repo)
    cleanup = VersionCleanup.from_config(config, melonkit_config.YamlSettingsStore())
    report = cleanup.run_if_needed(current_version, install_dir)

    if report.state == CleanupState.SKIPPED:
        print(f"Cleanup already done for {report.current_version}.")
        return
    if report.state == CleanupState.FAILED:
        log_utils.logger.error(f"Cleanup failed: {report.error_message}")
        sys.exit(1)

    for path in report.deleted:
        print(f"Deleted {path}")
    for outcome in report.failed:
        print(f"Could not delete {outcome.path}: {outcome.error}", file=sys.stderr)
    print(
        f"Cleanup complete for {report.current_version}: "
        f"{len(report.deleted)} deleted, {len(report.failed)} failed."
    )


def main(argv: Optional[List[str]] = None):
    """
    Entry point for the melonkit command-line interface.

    Parses command-line arguments and dispatches subcommands: releases, install,
    status, cleanup and version. Directory and version options fall back to the
    values stored in the configuration file.
    """
    parser = argparse.ArgumentParser(
        description="melonkit - MelonLoader installer and version cleanup tool"
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("releases", help="List available loader releases")

    install_parser = subparsers.add_parser(
        "install", help="Install the loader into a game directory"
    )
    install_parser.add_argument("--game-dir", help="Game root directory")
    install_parser.add_argument("--version", help="Loader release tag to install")

    status_parser = subparsers.add_parser(
        "status", help="Show the loader installation state of a game directory"
    )
    status_parser.add_argument("--game-dir", help="Game root directory")

    cleanup_parser = subparsers.add_parser(
        "cleanup",
        help="Remove files the previous release shipped but the current one does not",
    )
    cleanup_parser.add_argument("--install-dir", help="Installation directory")
    cleanup_parser.add_argument(
        "--current-version", required=True, help="Currently installed version"
    )
    cleanup_parser.add_argument(
        "--repo", help="GitHub repository as owner/name to read releases from"
    )

    subparsers.add_parser("version", help="Display melonkit version")

    args = parser.parse_args(argv)

    if args.command == "version":
        log_utils.logger.info(f"melonkit v{get_app_version()}")
        return
    if args.command is None:
        parser.print_help()
        return

    config = _load_config_or_exit()

    if args.command == "releases":
        run_releases(config)
    elif args.command == "install":
        game_dir = _require(args.game_dir or config.get("GAME_DIR"), "--game-dir", "GAME_DIR")
        version = _require(
            args.version or config.get("LOADER_VERSION"), "--version", "LOADER_VERSION"
        )
        run_install(config, game_dir, version)
    elif args.command == "status":
        game_dir = _require(args.game_dir or config.get("GAME_DIR"), "--game-dir", "GAME_DIR")
        run_status(config, game_dir)
    elif args.command == "cleanup":
        install_dir = _require(
            args.install_dir or config.get("CLEANUP_INSTALL_DIR"),
            "--install-dir",
            "CLEANUP_INSTALL_DIR",
        )
        run_cleanup(config, install_dir, args.current_version, args.repo)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
