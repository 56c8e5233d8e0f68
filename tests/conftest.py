import io
import time
import zipfile
from pathlib import Path

import platformdirs
import pytest
import requests

_NETWORK_BLOCK_MSG = (
    "Network access is blocked during tests. Mock requests.* or Session.request."
)


def _block_network(*_args, **_kwargs):
    """
    Prevent network calls in tests by raising a RuntimeError.

    Raises:
        RuntimeError: with `_NETWORK_BLOCK_MSG` indicating that network access is blocked during tests.
    """
    raise RuntimeError(_NETWORK_BLOCK_MSG)


def pytest_configure(config):
    """
    Register the markers used to group the test suite.

    Parameters:
        config: pytest.Config
            The pytest configuration object.
    """
    for marker in (
        "unit: fast isolated tests",
        "integration: tests exercising several components together",
        "core_downloads: release listing, download, install and cleanup logic",
        "configuration: configuration loading and persistence",
        "user_interface: command-line interface behaviour",
    ):
        config.addinivalue_line("markers", marker)


@pytest.fixture(autouse=True)
def _isolate_test_environment(tmp_path_factory, monkeypatch):
    """
    Create an isolated temporary XDG and application directory layout and patch environment and configuration to use it for tests.

    This fixture creates temp directories for cache, config and logs, sets XDG_* environment variables and MELONKIT_DISABLE_FILE_LOGGING, patches platformdirs user_* functions to return the temp paths, and updates melonkit.config constants (CONFIG_DIR, CONFIG_FILE) to point into the isolated structure.
    """
    base = tmp_path_factory.mktemp("melonkit")
    cache_dir = base / "cache"
    config_dir = base / "config"
    log_dir = base / "log"

    for path in (cache_dir, config_dir, log_dir):
        path.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("XDG_CACHE_HOME", str(cache_dir))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_dir))
    monkeypatch.setenv("MELONKIT_DISABLE_FILE_LOGGING", "1")
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)

    monkeypatch.setattr(
        platformdirs, "user_cache_dir", lambda *_args, **_kwargs: str(cache_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_config_dir", lambda *_args, **_kwargs: str(config_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_log_dir", lambda *_args, **_kwargs: str(log_dir)
    )

    import melonkit.config as melonkit_config

    monkeypatch.setattr(melonkit_config, "CONFIG_DIR", str(config_dir))
    monkeypatch.setattr(
        melonkit_config,
        "CONFIG_FILE",
        str(Path(config_dir) / melonkit_config.CONFIG_FILE_NAME),
    )


def pytest_runtest_setup():
    """
    Prevent real network requests during tests by replacing HTTP entry points with blocking callables.
    """
    requests.get = _block_network
    requests.post = _block_network
    requests.put = _block_network
    requests.delete = _block_network
    requests.head = _block_network
    requests.patch = _block_network
    requests.options = _block_network
    requests.Session.request = _block_network


@pytest.fixture(autouse=True)
def _mock_time_sleep(monkeypatch):
    """
    Make time.sleep instant for all tests to prevent delays.

    Tests that require real timing behavior should explicitly monkeypatch sleep
    back to the real implementation within the test.
    """
    monkeypatch.setattr(time, "sleep", lambda *_args, **_kwargs: None)


def build_zip(entries):
    """
    Build an in-memory zip archive.

    Parameters:
        entries: Iterable of (name, data) pairs written in order; names ending
            in "/" become directory entries. Duplicate names are allowed.

    Returns:
        bytes: The archive bytes.
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in entries:
            if name.endswith("/"):
                zf.writestr(zipfile.ZipInfo(name), b"")
            else:
                zf.writestr(name, data)
    return buffer.getvalue()


@pytest.fixture
def zip_bytes():
    """Provide the build_zip() factory to tests."""
    return build_zip


@pytest.fixture
def loader_zip_bytes():
    """Archive bytes shaped like a real loader release."""
    return build_zip(
        [
            ("MelonLoader/", b""),
            ("MelonLoader/net6/MelonLoader.dll", b"loader"),
            ("MelonLoader/Dependencies/Bootstrap.dll", b"bootstrap"),
            ("version.dll", b"proxy"),
            ("dobby.dll", b"hooks"),
        ]
    )


@pytest.fixture
def sample_release_data():
    """Fixture providing sample GitHub release data for testing."""
    return [
        {
            "tag_name": "v0.6.5",
            "prerelease": False,
            "published_at": "2024-08-01T00:00:00Z",
            "name": "v0.6.5 Open-Beta",
            "assets": [
                {
                    "name": "MelonLoader.x86.zip",
                    "browser_download_url": "https://github.com/LavaGang/MelonLoader/releases/download/v0.6.5/MelonLoader.x86.zip",
                    "size": 4096,
                    "content_type": "application/zip",
                },
                {
                    "name": "MelonLoader.x64.zip",
                    "browser_download_url": "https://github.com/LavaGang/MelonLoader/releases/download/v0.6.5/MelonLoader.x64.zip",
                    "size": 4096,
                    "content_type": "application/zip",
                },
            ],
        },
        {
            "tag_name": "v0.6.4",
            "prerelease": False,
            "published_at": "2024-06-01T00:00:00Z",
            "name": "v0.6.4 Open-Beta",
            "assets": [
                {
                    "name": "MelonLoader.x64.zip",
                    "browser_download_url": "https://github.com/LavaGang/MelonLoader/releases/download/v0.6.4/MelonLoader.x64.zip",
                    "size": 4000,
                    "content_type": "application/zip",
                },
            ],
        },
    ]


@pytest.fixture
def sample_releases(sample_release_data):
    """Fixture providing Release objects parsed from sample_release_data."""
    from melonkit.download.github_source import parse_releases

    return parse_releases(sample_release_data, "LavaGang/MelonLoader")
