"""
Payload Integrity Checks

Validates downloaded archive bytes before anything is extracted: the payload
must be non-empty, start with the zip signature, and land on disk with exactly
the length that was downloaded.
"""

import os
from pathlib import Path
from typing import Optional

from melonkit.constants import MIN_ARCHIVE_SIZE, ZIP_SIGNATURE
from melonkit.exceptions import (
    BadSignatureError,
    EmptyPayloadError,
    IntegrityError,
    SizeMismatchError,
    TempFileMissingError,
)
from melonkit.log_utils import logger

from .interfaces import Pathish

HEADER_PREVIEW_BYTES = 8


def validate_payload(data: Optional[bytes]) -> None:
    """
    Check that a downloaded payload looks like a zip archive.

    Emptiness is checked first, so a zero-length payload always reports
    EmptyPayloadError even though it also lacks a signature.

    Raises:
        EmptyPayloadError: If `data` is None or has zero length.
        BadSignatureError: If `data` is shorter than 4 bytes or does not start with 0x50 0x4B.
    """
    if not data:
        raise EmptyPayloadError("Downloaded payload is empty")

    if len(data) < MIN_ARCHIVE_SIZE or data[: len(ZIP_SIGNATURE)] != ZIP_SIGNATURE:
        header = bytes(data[:HEADER_PREVIEW_BYTES])
        raise BadSignatureError("Payload is not a zip archive", header=header)


def validate(data: Optional[bytes]) -> Optional[IntegrityError]:
    """Return the integrity error for `data`, or None when the payload is acceptable."""
    try:
        validate_payload(data)
    except IntegrityError as e:
        return e
    return None


def verify_written_size(file_path: Pathish, expected_size: int) -> int:
    """
    Confirm that the file at `file_path` holds exactly `expected_size` bytes.

    Returns:
        int: The on-disk size.

    Raises:
        TempFileMissingError: If the file does not exist.
        SizeMismatchError: If the on-disk size differs from `expected_size`.
    """
    path = str(file_path)
    if not os.path.isfile(path):
        raise TempFileMissingError(
            "Temporary archive missing after write",
            expected=expected_size,
            actual=None,
            path=path,
        )

    actual_size = os.path.getsize(path)
    if actual_size != expected_size:
        raise SizeMismatchError(
            "Written archive size differs from downloaded length",
            expected=expected_size,
            actual=actual_size,
            path=path,
        )
    return actual_size


def _write_bytes(path: Path, data: bytes) -> None:
    with open(path, "wb") as f:
        f.write(data)


def write_payload(data: bytes, file_path: Pathish) -> Path:
    """
    Validate `data`, write it to `file_path` and verify the written size.

    Parent directories are created as needed. Nothing outside `file_path`
    is touched.

    Returns:
        Path: The written file.

    Raises:
        IntegrityError: If validation or the size check fails.
        OSError: If the file cannot be written.
    """
    validate_payload(data)

    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    _write_bytes(path, data)

    size = verify_written_size(path, len(data))
    logger.debug("Verified %s (%d bytes)", path.name, size)
    return path
