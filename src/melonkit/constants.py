"""
Constants and configuration values for melonkit.

This module contains all hardcoded values, URLs, timeouts, and other constants
used throughout the application.
"""

# GitHub API URLs
GITHUB_API_BASE = "https://api.github.com/repos"
GITHUB_HOSTS = ("github.com", "raw.githubusercontent.com", "gist.githubusercontent.com")

# Release repositories
LOADER_REPO_OWNER = "LavaGang"
LOADER_REPO_NAME = "MelonLoader"
DEFAULT_CLEANUP_REPO = "RoyZ-iwnl/GHPC-Mod-Manager"

# Network timeouts and delays (in seconds)
GITHUB_API_TIMEOUT = 10
API_CALL_DELAY = 0.1  # Small delay to be respectful to GitHub API
GITHUB_MAX_PER_PAGE = 100

# Download configuration defaults
DEFAULT_CONNECT_RETRIES = 5
DEFAULT_BACKOFF_FACTOR = 0.3
DEFAULT_REQUEST_TIMEOUT = 600
DEFAULT_CHUNK_SIZE = 8192
PROGRESS_REPORT_INTERVAL = 0.5  # seconds between progress callbacks

# Archive format
ZIP_EXTENSION = ".zip"
ZIP_SIGNATURE = b"PK"  # 0x50, 0x4B
MIN_ARCHIVE_SIZE = 4

# Loader payload layout
LOADER_ASSET_NAME = "MelonLoader.x64.zip"
LOADER_MARKER_DIR = "MelonLoader"
LOADER_MARKER_FILES = ("version.dll", "dobby.dll")
LOADER_USER_DIRS = ("UserData", "Mods")

# Scratch directory layout
SCRATCH_DIR_NAME = "temp"
CLEANUP_SCRATCH_DIR_NAME = "version_cleanup"
PREVIOUS_ARCHIVE_TEMPLATE = "prev_{version}.zip"
CURRENT_ARCHIVE_TEMPLATE = "curr_{version}.zip"
LOADER_ARCHIVE_TEMPLATE = "MelonLoader_{version}.zip"

# Version tags
VERSION_PREFIX_CHARS = "vV"

# Logging configuration
LOGGER_NAME = "melonkit"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
INFO_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s: %(message)s"
LOG_FILE_NAME = "melonkit.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUP_COUNT = 5

# Configuration file names
APP_NAME = "melonkit"
CONFIG_FILE_NAME = "melonkit.yaml"

# Environment variable names
LOG_LEVEL_ENV_VAR = "MELONKIT_LOG_LEVEL"
DISABLE_FILE_LOGGING_ENV_VAR = "MELONKIT_DISABLE_FILE_LOGGING"
GITHUB_TOKEN_ENV_VAR = "GITHUB_TOKEN"
