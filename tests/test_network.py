"""Tests for the HTTP downloader and GitHub mirror rewriting."""

import pytest

from melonkit.download import network
from melonkit.download.interfaces import DownloadProgress
from melonkit.download.network import HttpDownloader, apply_github_proxy
from melonkit.exceptions import NetworkError

pytestmark = [pytest.mark.unit, pytest.mark.core_downloads]

RELEASE_URL = "https://github.com/LavaGang/MelonLoader/releases/download/v0.6.5/MelonLoader.x64.zip"


class TestApplyGithubProxy:
    def test_release_download_is_prefixed(self):
        assert (
            apply_github_proxy(RELEASE_URL, "https://mirror.example/")
            == f"https://mirror.example/{RELEASE_URL}"
        )

    def test_no_proxy_returns_url(self):
        assert apply_github_proxy(RELEASE_URL, None) == RELEASE_URL
        assert apply_github_proxy(RELEASE_URL, "") == RELEASE_URL

    def test_non_github_host_untouched(self):
        url = "https://example.com/releases/download/v1/a.zip"
        assert apply_github_proxy(url, "https://mirror.example") == url

    def test_api_path_untouched(self):
        url = "https://github.com/LavaGang/MelonLoader"
        assert apply_github_proxy(url, "https://mirror.example") == url


class TestHttpDownloader:
    def test_direct_download_wraps_progress(self, mocker):
        def _fake_download(url, callback):
            callback(5, 10, 100.0)
            callback(10, 10, 200.0)
            return b"PK\x03\x04abcdef"

        mock_download = mocker.patch.object(
            network, "download_bytes_with_retry", side_effect=_fake_download
        )
        updates = []

        data = HttpDownloader({}).download(RELEASE_URL, progress=updates.append)

        assert data == b"PK\x03\x04abcdef"
        mock_download.assert_called_once()
        assert updates == [
            DownloadProgress(5, 10, 100.0),
            DownloadProgress(10, 10, 200.0),
        ]
        assert updates[0].percent == 50.0

    def test_proxy_used_first(self, mocker):
        mock_download = mocker.patch.object(
            network, "download_bytes_with_retry", return_value=b"PK\x03\x04"
        )

        HttpDownloader({"GITHUB_PROXY": "https://mirror.example"}).download(RELEASE_URL)

        mock_download.assert_called_once_with(
            f"https://mirror.example/{RELEASE_URL}", None
        )

    def test_proxy_failure_falls_back_to_direct(self, mocker):
        mock_download = mocker.patch.object(
            network,
            "download_bytes_with_retry",
            side_effect=[NetworkError("mirror down"), b"PK\x03\x04"],
        )

        data = HttpDownloader({"GITHUB_PROXY": "https://mirror.example"}).download(
            RELEASE_URL
        )

        assert data == b"PK\x03\x04"
        assert [c.args[0] for c in mock_download.call_args_list] == [
            f"https://mirror.example/{RELEASE_URL}",
            RELEASE_URL,
        ]

    def test_direct_failure_raises(self, mocker):
        mocker.patch.object(
            network, "download_bytes_with_retry", side_effect=NetworkError("offline")
        )

        with pytest.raises(NetworkError):
            HttpDownloader().download(RELEASE_URL)
