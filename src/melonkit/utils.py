# src/melonkit/utils.py
import importlib.metadata
import os
import threading
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry  # type: ignore

from melonkit.constants import (
    API_CALL_DELAY,
    APP_NAME,
    DEFAULT_BACKOFF_FACTOR,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONNECT_RETRIES,
    DEFAULT_REQUEST_TIMEOUT,
    GITHUB_API_TIMEOUT,
    GITHUB_TOKEN_ENV_VAR,
    PROGRESS_REPORT_INTERVAL,
    VERSION_PREFIX_CHARS,
)
from melonkit.exceptions import HTTPError, NetworkError
from melonkit.log_utils import logger

ProgressCallback = Callable[[int, Optional[int], float], None]

# Cache for the User-Agent string to avoid repeated metadata lookups
_USER_AGENT_CACHE = None

# Thread-safe token warning tracking
_token_warning_shown = False
_token_warning_lock = threading.Lock()


def get_app_version() -> str:
    """Return the installed melonkit version, or "unknown" outside an installed distribution."""
    try:
        return importlib.metadata.version(APP_NAME)
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def get_user_agent() -> str:
    """
    Get the User-Agent string used for HTTP requests.

    Returns:
        The string `melonkit/{version}`, where `{version}` is the installed package version or `unknown`.
    """
    global _USER_AGENT_CACHE

    if _USER_AGENT_CACHE is None:
        _USER_AGENT_CACHE = f"{APP_NAME}/{get_app_version()}"

    return _USER_AGENT_CACHE


def strip_version_prefix(version: Optional[str]) -> str:
    """
    Remove leading version-prefix characters ("v"/"V") and surrounding whitespace.

    Parameters:
        version (Optional[str]): A release tag such as "v0.6.1"; None is treated as empty.

    Returns:
        str: The bare version string, e.g. "0.6.1".
    """
    if not version:
        return ""
    return version.strip().lstrip(VERSION_PREFIX_CHARS)


def versions_match(first: Optional[str], second: Optional[str]) -> bool:
    """Case-insensitive equality of two versions after stripping their prefixes."""
    return strip_version_prefix(first).lower() == strip_version_prefix(second).lower()


def get_effective_github_token(
    github_token: Optional[str], allow_env_token: bool = True
) -> Optional[str]:
    """
    Determine the GitHub token to use, preferring the explicit argument over the environment.

    Parameters:
        github_token (Optional[str]): Explicit token to use; leading and trailing whitespace are ignored.
        allow_env_token (bool): If True, fall back to the `GITHUB_TOKEN` environment variable when no explicit token is provided.

    Returns:
        Optional[str]: The chosen token with surrounding whitespace removed, or `None` if no token is available.
    """
    candidate = (github_token or "").strip()
    if candidate:
        return candidate
    if not allow_env_token:
        return None
    env_token = os.environ.get(GITHUB_TOKEN_ENV_VAR)
    return env_token.strip() if env_token else None


def _show_token_warning_if_needed(effective_token: Optional[str]) -> None:
    """Log a one-time notice when no GitHub token is available."""
    if not effective_token:
        global _token_warning_shown
        with _token_warning_lock:
            if not _token_warning_shown:
                logger.debug(
                    "No GITHUB_TOKEN found - using unauthenticated API requests (60/hour limit). "
                    "Set GITHUB_TOKEN or the GITHUB_TOKEN config key for higher limits."
                )
                _token_warning_shown = True


def _parse_rate_limit_header(header_value: Any) -> Optional[int]:
    """
    Parse an HTTP rate-limit header value into an integer remaining count.

    Returns:
        Optional[int]: The parsed integer value if successful, `None` otherwise.
    """
    try:
        if isinstance(header_value, str) and header_value.isdigit():
            return int(header_value)
        elif isinstance(header_value, (int, float)):
            return int(header_value)
    except (ValueError, TypeError):
        pass
    return None


def make_github_api_request(
    url: str,
    github_token: Optional[str] = None,
    allow_env_token: bool = True,
    params: Optional[Dict[str, Any]] = None,
    timeout: Optional[int] = None,
    _is_retry: bool = False,
) -> requests.Response:
    """
    Perform a GitHub API GET request with optional token authentication.

    Retries once without authentication if token-based auth returns 401, and turns
    a 403 with an exhausted rate limit into a descriptive error.

    Parameters:
        url (str): GitHub API URL to request.
        github_token (Optional[str]): Explicit GitHub token to prefer for Authorization.
        allow_env_token (bool): Allow falling back to the GITHUB_TOKEN environment variable.
        params (Optional[Dict[str, Any]]): Query parameters to include in the request.
        timeout (Optional[int]): Request timeout in seconds; the module default is used when omitted.

    Returns:
        requests.Response: The HTTP response returned by GitHub.

    Raises:
        requests.HTTPError: For HTTP error responses.
        requests.RequestException: For lower-level network or request errors.
    """
    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
        "User-Agent": get_user_agent(),
    }

    effective_token = get_effective_github_token(github_token, allow_env_token)
    if effective_token:
        headers["Authorization"] = f"token {effective_token}"
        logger.debug("Using GitHub token for API authentication")
    _show_token_warning_if_needed(effective_token)

    try:
        logger.debug(f"Making GitHub API request: {url}")
        response = requests.get(
            url,
            timeout=timeout or GITHUB_API_TIMEOUT,
            headers=headers,
            params=params,
        )
        response.raise_for_status()
    except requests.HTTPError as e:
        if (
            not _is_retry
            and e.response is not None
            and e.response.status_code == 401
            and effective_token
        ):
            logger.warning(
                f"GitHub token authentication failed for {url}. Retrying without authentication."
            )
            return make_github_api_request(
                url,
                github_token=None,
                allow_env_token=False,
                params=params,
                timeout=timeout,
                _is_retry=True,
            )
        if e.response is not None and e.response.status_code == 403:
            remaining = _parse_rate_limit_header(
                e.response.headers.get("X-RateLimit-Remaining")
            )
            if remaining == 0:
                reset_time = e.response.headers.get("X-RateLimit-Reset")
                reset_time_str = (
                    datetime.fromtimestamp(int(reset_time), timezone.utc).strftime(
                        "%Y-%m-%d %H:%M:%S UTC"
                    )
                    if reset_time
                    else "unknown"
                )
                error_msg = (
                    f"GitHub API rate limit exceeded. Resets at {reset_time_str}. "
                    "Set GITHUB_TOKEN for higher rate limits."
                )
            else:
                error_msg = "GitHub API access forbidden"
            logger.error(error_msg)
            raise requests.HTTPError(error_msg, response=e.response) from None
        raise
    finally:
        time.sleep(API_CALL_DELAY)

    resp_headers = getattr(response, "headers", None) or {}
    remaining = _parse_rate_limit_header(resp_headers.get("X-RateLimit-Remaining"))
    if remaining is not None:
        logger.debug(f"GitHub API rate-limit remaining: {remaining}")
        if remaining <= 10:
            logger.warning(
                f"GitHub API rate limit running low: {remaining} requests remaining"
            )

    return response


def _build_retry_session() -> requests.Session:
    """Create a Session whose adapters retry connection errors and transient HTTP statuses."""
    session = requests.Session()
    retry_strategy: Retry = Retry(
        total=DEFAULT_CONNECT_RETRIES,
        connect=DEFAULT_CONNECT_RETRIES,
        read=DEFAULT_CONNECT_RETRIES,
        status=DEFAULT_CONNECT_RETRIES,
        backoff_factor=DEFAULT_BACKOFF_FACTOR,
        status_forcelist=[408, 429, 500, 502, 503, 504],
        allowed_methods=frozenset({"GET", "HEAD"}),
        raise_on_status=False,
        respect_retry_after_header=True,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers["User-Agent"] = get_user_agent()
    return session


def _parse_content_length(response: Any) -> Optional[int]:
    headers = getattr(response, "headers", None) or {}
    # Content-Length counts encoded bytes, iter_content yields decoded ones
    if headers.get("Content-Encoding"):
        return None
    raw = headers.get("Content-Length")
    try:
        value = int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None
    return value if value is not None and value >= 0 else None


def download_bytes_with_retry(
    url: str,
    progress_callback: Optional[ProgressCallback] = None,
    timeout: Optional[int] = None,
) -> bytes:
    """
    Download a remote resource fully into memory.

    Streams the response with retry-capable HTTP requests and reports incremental
    progress as `(bytes_received, total_bytes, bytes_per_second)`. The callback is
    a notification channel only; exceptions it raises are logged and ignored.

    Parameters:
        url (str): The HTTP(S) URL to download.
        progress_callback (Optional[ProgressCallback]): Receives progress updates.
        timeout (Optional[int]): Per-request timeout; defaults to DEFAULT_REQUEST_TIMEOUT.

    Returns:
        bytes: The complete response body.

    Raises:
        HTTPError: When the server answers with an error status.
        NetworkError: On transport failures or when fewer bytes arrive than Content-Length announced.
    """
    session = _build_retry_session()
    response = None
    try:
        logger.debug(f"Attempting to download {url}")
        start_time = time.monotonic()
        response = session.get(
            url, stream=True, timeout=timeout or DEFAULT_REQUEST_TIMEOUT
        )
        logger.debug(
            f"Received HTTP response status code: {response.status_code} for URL: {url}"
        )
        response.raise_for_status()

        total_bytes = _parse_content_length(response)
        chunks = []
        received = 0
        last_report = 0.0
        for chunk in response.iter_content(chunk_size=DEFAULT_CHUNK_SIZE):
            if not chunk:
                continue
            chunks.append(chunk)
            received += len(chunk)
            now = time.monotonic()
            if progress_callback and now - last_report >= PROGRESS_REPORT_INTERVAL:
                last_report = now
                _notify_progress(progress_callback, received, total_bytes, start_time)

        if total_bytes is not None and received != total_bytes:
            raise NetworkError(
                "Download truncated",
                url=url,
                details=f"received {received} of {total_bytes} bytes",
            )

        if progress_callback:
            _notify_progress(progress_callback, received, total_bytes, start_time)

        elapsed = time.monotonic() - start_time
        logger.debug("Downloaded %d bytes in %.2fs from %s", received, elapsed, url)
        return b"".join(chunks)

    except requests.HTTPError as e_http:
        status = e_http.response.status_code if e_http.response is not None else None
        logger.error(f"HTTP error downloading {url}: {e_http}")
        raise HTTPError(
            f"HTTP error downloading {url}", status_code=status, url=url
        ) from e_http
    except requests.exceptions.RequestException as e_req:
        logger.error(f"Network error downloading {url}: {e_req}")
        raise NetworkError(
            f"Network error downloading {url}", url=url, details=str(e_req)
        ) from e_req
    finally:
        if response is not None:
            try:
                response.close()
            except Exception as e:  # noqa: BLE001
                logger.debug(f"Error closing HTTP response for {url}: {e}")
        session.close()


def _notify_progress(
    callback: ProgressCallback,
    received: int,
    total: Optional[int],
    start_time: float,
) -> None:
    elapsed = time.monotonic() - start_time
    speed = received / elapsed if elapsed > 0 else 0.0
    try:
        callback(received, total, speed)
    except Exception as e:  # noqa: BLE001
        logger.debug(f"Progress callback raised: {e}")
