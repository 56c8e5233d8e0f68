# src/melonkit/config.py

import os
from typing import Any, Dict, Optional

import platformdirs
import yaml

from melonkit.constants import APP_NAME, CONFIG_FILE_NAME, SCRATCH_DIR_NAME
from melonkit.download.files import _atomic_write
from melonkit.download.interfaces import SettingsStore
from melonkit.exceptions import ConfigFileError
from melonkit.log_utils import logger

# Get the config directory using platformdirs
CONFIG_DIR = platformdirs.user_config_dir(APP_NAME)
CONFIG_FILE = os.path.join(CONFIG_DIR, CONFIG_FILE_NAME)

CLEANUP_MARKER_KEY = "CLEANUP_DONE_FOR_VERSION"

DEFAULT_CONFIG: Dict[str, Any] = {
    "GAME_DIR": None,
    "LOADER_VERSION": None,
    "SCRATCH_DIR": None,
    "GITHUB_TOKEN": None,
    "ALLOW_ENV_TOKEN": True,
    "GITHUB_PROXY": None,
    "CLEANUP_REPO": None,
    "CLEANUP_INSTALL_DIR": None,
    CLEANUP_MARKER_KEY: None,
    "LOG_LEVEL": "INFO",
}


def get_default_scratch_dir() -> str:
    """Return the scratch directory used for temporary archives when none is configured."""
    return os.path.join(platformdirs.user_cache_dir(APP_NAME), SCRATCH_DIR_NAME)


def get_log_dir() -> str:
    return platformdirs.user_log_dir(APP_NAME)


def _read_config_file(config_file: str) -> Dict[str, Any]:
    """
    Read a YAML config file into a dict.

    Raises:
        ConfigFileError: If the file cannot be read, is not valid YAML, or is not a mapping.
    """
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigFileError(f"Invalid YAML in {config_file}", details=str(e)) from e
    except OSError as e:
        raise ConfigFileError(f"Could not read {config_file}", details=str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigFileError(
            f"Configuration in {config_file} must be a mapping",
            details=f"got {type(data).__name__}",
        )
    return data


def load_config(config_file: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the melonkit configuration.

    Values from the YAML file override DEFAULT_CONFIG; a missing file yields the
    defaults. `SCRATCH_DIR` is always filled in.

    Parameters:
        config_file (str | None): Explicit config path; defaults to CONFIG_FILE.

    Returns:
        dict: The merged configuration.

    Raises:
        ConfigFileError: If an existing file cannot be parsed.
    """
    path = config_file or CONFIG_FILE
    config = dict(DEFAULT_CONFIG)
    if os.path.exists(path):
        config.update(_read_config_file(path))
        logger.debug(f"Loaded configuration from {path}")
    if not config.get("SCRATCH_DIR"):
        config["SCRATCH_DIR"] = get_default_scratch_dir()
    return config


def save_config(config: Dict[str, Any], config_file: Optional[str] = None) -> bool:
    """
    Atomically write `config` as YAML.

    Returns:
        bool: True on success, False when the file could not be written.
    """
    path = config_file or CONFIG_FILE
    try:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    except OSError as e:
        logger.error(f"Could not create config directory for {path}: {e}")
        return False
    return _atomic_write(
        path,
        lambda f: yaml.safe_dump(config, f, default_flow_style=False, sort_keys=True),
        suffix=".yaml",
    )


class YamlSettingsStore(SettingsStore):
    """SettingsStore persisting the cleanup completion marker in the YAML config file."""

    def __init__(self, config_file: Optional[str] = None):
        self.config_file = config_file or CONFIG_FILE

    def get_cleanup_done_version(self) -> Optional[str]:
        if not os.path.exists(self.config_file):
            return None
        value = _read_config_file(self.config_file).get(CLEANUP_MARKER_KEY)
        return str(value) if value else None

    def set_cleanup_done_version(self, version: str) -> None:
        """
        Raises:
            ConfigFileError: If the config file cannot be read or written.
        """
        data: Dict[str, Any] = {}
        if os.path.exists(self.config_file):
            data = _read_config_file(self.config_file)
        data[CLEANUP_MARKER_KEY] = version
        if not save_config(data, self.config_file):
            raise ConfigFileError(f"Could not save {self.config_file}")
