"""
Custom exceptions for the melonkit application.

This module defines domain-specific exceptions that provide better error
categorization and more informative error messages for users and developers.
"""


class MelonkitError(Exception):
    """
    Base exception for all melonkit errors.

    All custom exceptions in melonkit should inherit from this class
    to allow for easy catching of all application-specific errors.
    """

    def __init__(self, message: str, details: str | None = None) -> None:
        """
        Initialize the exception.

        Args:
            message: The primary error message.
            details: Optional additional context about the error.
        """
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(MelonkitError):
    """
    Exception raised when configuration is invalid or missing.

    This includes:
    - Missing required configuration keys
    - Invalid configuration values
    - Configuration file parsing errors
    """

    pass


class ConfigFileError(ConfigurationError):
    """Exception raised when configuration file cannot be read or written."""

    pass


# =============================================================================
# Download Errors
# =============================================================================


class DownloadError(MelonkitError):
    """
    Base exception for download-related errors.

    Attributes:
        url: The URL that was being downloaded when the error occurred.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.url = url


class NetworkError(DownloadError):
    """
    Exception raised for transport-level download failures.

    This includes:
    - Connection timeouts and refused connections
    - DNS resolution failures
    - Truncated response bodies
    """

    pass


class HTTPError(DownloadError):
    """
    Exception raised for HTTP-related download failures.

    Attributes:
        status_code: The HTTP status code returned by the server.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, url, details)
        self.status_code = status_code


# =============================================================================
# Integrity Errors
# =============================================================================


class IntegrityError(MelonkitError):
    """
    Exception raised when a downloaded payload fails integrity validation.

    Integrity errors are detected before anything touches the install
    directory.
    """

    pass


class EmptyPayloadError(IntegrityError):
    """Exception raised when a downloaded payload has zero length."""

    pass


class BadSignatureError(IntegrityError):
    """Exception raised when a payload does not start with the zip signature."""

    def __init__(self, message: str, header: bytes = b"") -> None:
        super().__init__(message, details=header.hex(" ") if header else None)
        self.header = header


class SizeMismatchError(IntegrityError):
    """
    Exception raised when the bytes on disk differ from the downloaded length.

    Attributes:
        expected: Length of the in-memory payload.
        actual: Size of the written file, or None if it is missing.
    """

    def __init__(
        self,
        message: str,
        expected: int | None = None,
        actual: int | None = None,
        path: str | None = None,
    ) -> None:
        super().__init__(message, details=f"expected={expected}, actual={actual}")
        self.expected = expected
        self.actual = actual
        self.path = path


class TempFileMissingError(SizeMismatchError):
    """Exception raised when the scratch file is absent right after writing it."""

    pass


# =============================================================================
# Archive Errors
# =============================================================================


class ArchiveError(MelonkitError):
    """
    Exception raised for archive-related errors.

    This includes:
    - Corrupted ZIP files
    - Archives without entries
    - Extraction failures
    """

    def __init__(
        self,
        message: str,
        archive_path: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.archive_path = archive_path


class EmptyArchiveError(ArchiveError):
    """Exception raised when a zip archive contains no entries at all."""

    pass


class ExtractionError(ArchiveError):
    """
    Exception raised when a single archive entry cannot be extracted.

    Extraction is all-or-nothing, so this aborts the whole install.

    Attributes:
        entry: The archive member that failed.
    """

    def __init__(
        self,
        message: str,
        entry: str | None = None,
        archive_path: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, archive_path, details)
        self.entry = entry


class InstallVerificationError(MelonkitError):
    """Exception raised when expected marker paths are absent after extraction."""

    pass


# =============================================================================
# Selection Errors
# =============================================================================


class SelectionError(MelonkitError):
    """Base exception for failures to pick a release or asset."""

    pass


class ReleaseNotFoundError(SelectionError):
    """Exception raised when no release matches the requested version."""

    def __init__(self, message: str, version: str | None = None) -> None:
        super().__init__(message, details=f"version={version}" if version else None)
        self.version = version


class AssetNotFoundError(SelectionError):
    """Exception raised when a release has no asset matching the naming pattern."""

    def __init__(
        self,
        message: str,
        release_tag: str | None = None,
        pattern: str | None = None,
    ) -> None:
        super().__init__(message, details=f"pattern={pattern}" if pattern else None)
        self.release_tag = release_tag
        self.pattern = pattern


# =============================================================================
# File System Errors
# =============================================================================


class FileSystemError(MelonkitError):
    """
    Exception raised for file system-related errors.

    Attributes:
        path: The file path that caused the error.
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details)
        self.path = path


class PathValidationError(FileSystemError):
    """Exception raised when a path resolves outside its base directory."""

    pass


class PerFileDeleteError(FileSystemError):
    """Recorded when a single obsolete file could not be deleted during cleanup."""

    pass
