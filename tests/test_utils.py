"""Tests for version helpers, GitHub API requests and in-memory downloads."""

from unittest.mock import Mock

import pytest
import requests

from melonkit import utils
from melonkit.exceptions import HTTPError, NetworkError
from melonkit.utils import (
    download_bytes_with_retry,
    get_effective_github_token,
    make_github_api_request,
    strip_version_prefix,
    versions_match,
)

pytestmark = [pytest.mark.unit]


def _stream_response(chunks, headers=None, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.headers = headers or {}
    response.iter_content.return_value = iter(chunks)
    response.raise_for_status.return_value = None
    return response


def _session_returning(mocker, response):
    session = Mock()
    session.get.return_value = response
    mocker.patch.object(utils, "_build_retry_session", return_value=session)
    return session


class TestVersionHelpers:
    @pytest.mark.parametrize(
        "raw,expected",
        [("v0.6.1", "0.6.1"), ("V1.0", "1.0"), (" 2.0 ", "2.0"), ("1.0", "1.0"), (None, "")],
    )
    def test_strip_version_prefix(self, raw, expected):
        assert strip_version_prefix(raw) == expected

    def test_versions_match(self):
        assert versions_match("v1.0-Beta", "1.0-beta") is True
        assert versions_match("1.0", "1.0.1") is False
        assert versions_match(None, "") is True


class TestGithubToken:
    def test_explicit_token_wins(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "env")
        assert get_effective_github_token(" explicit ") == "explicit"

    def test_env_token_fallback(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "env")
        assert get_effective_github_token(None) == "env"
        assert get_effective_github_token(None, allow_env_token=False) is None


class TestMakeGithubApiRequest:
    def test_sends_token_and_params(self, mocker):
        response = Mock(headers={"X-RateLimit-Remaining": "4999"})
        mock_get = mocker.patch("melonkit.utils.requests.get", return_value=response)

        result = make_github_api_request(
            "https://api.github.com/repos/o/r/releases",
            github_token="tok",
            params={"per_page": 100},
        )

        assert result is response
        kwargs = mock_get.call_args.kwargs
        assert kwargs["headers"]["Authorization"] == "token tok"
        assert kwargs["params"] == {"per_page": 100}

    def test_retries_without_token_on_401(self, mocker):
        unauthorized = Mock(status_code=401, headers={})
        failing = Mock(headers={})
        failing.raise_for_status.side_effect = requests.HTTPError(
            "401", response=unauthorized
        )
        ok = Mock(headers={})
        mock_get = mocker.patch(
            "melonkit.utils.requests.get", side_effect=[failing, ok]
        )

        result = make_github_api_request("https://api.github.com/x", github_token="bad")

        assert result is ok
        assert mock_get.call_count == 2
        assert "Authorization" not in mock_get.call_args_list[1].kwargs["headers"]

    def test_rate_limit_message(self, mocker):
        limited = Mock(
            status_code=403,
            headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"},
        )
        failing = Mock(headers={})
        failing.raise_for_status.side_effect = requests.HTTPError(
            "403", response=limited
        )
        mocker.patch("melonkit.utils.requests.get", return_value=failing)

        with pytest.raises(requests.HTTPError, match="rate limit exceeded"):
            make_github_api_request("https://api.github.com/x")


class TestDownloadBytesWithRetry:
    def test_returns_joined_body_and_reports_progress(self, mocker):
        response = _stream_response([b"PK\x03\x04", b"", b"rest"], {"Content-Length": "8"})
        session = _session_returning(mocker, response)
        updates = []

        data = download_bytes_with_retry(
            "https://example.com/a.zip",
            progress_callback=lambda r, t, s: updates.append((r, t)),
        )

        assert data == b"PK\x03\x04rest"
        assert updates[-1] == (8, 8)
        response.close.assert_called_once()
        session.close.assert_called_once()

    def test_truncated_body_raises(self, mocker):
        response = _stream_response([b"PK\x03\x04"], {"Content-Length": "10"})
        _session_returning(mocker, response)

        with pytest.raises(NetworkError, match="truncated"):
            download_bytes_with_retry("https://example.com/a.zip")

    def test_unknown_length_accepts_body(self, mocker):
        response = _stream_response([b"abc"], {})
        _session_returning(mocker, response)
        updates = []

        data = download_bytes_with_retry(
            "https://example.com/a", lambda r, t, s: updates.append((r, t))
        )

        assert data == b"abc"
        assert updates[-1] == (3, None)

    def test_encoded_body_ignores_content_length(self, mocker):
        response = _stream_response(
            [b"decoded-body"], {"Content-Length": "5", "Content-Encoding": "gzip"}
        )
        _session_returning(mocker, response)

        assert download_bytes_with_retry("https://example.com/a") == b"decoded-body"

    def test_http_error_status_raises(self, mocker):
        response = _stream_response([], status_code=404)
        response.raise_for_status.side_effect = requests.HTTPError(
            "404", response=Mock(status_code=404)
        )
        _session_returning(mocker, response)

        with pytest.raises(HTTPError) as exc_info:
            download_bytes_with_retry("https://example.com/missing.zip")

        assert exc_info.value.status_code == 404

    def test_connection_error_raises_network_error(self, mocker):
        session = Mock()
        session.get.side_effect = requests.ConnectionError("refused")
        mocker.patch.object(utils, "_build_retry_session", return_value=session)

        with pytest.raises(NetworkError):
            download_bytes_with_retry("https://example.com/a.zip")
        session.close.assert_called_once()

    def test_progress_callback_errors_are_ignored(self, mocker):
        _session_returning(mocker, _stream_response([b"abc"], {"Content-Length": "3"}))

        def _broken(*_args):
            raise ValueError("ui gone")

        assert download_bytes_with_retry("https://example.com/a", _broken) == b"abc"
