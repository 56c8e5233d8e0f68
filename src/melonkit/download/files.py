"""
File Operations for the melonkit Download Subsystem

This module provides file operation utilities including atomic writes,
path containment checks, scoped scratch directories and archive listing.
"""

import contextlib
import os
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import Any, Callable, Iterator, Set

from melonkit.exceptions import PathValidationError
from melonkit.log_utils import logger

from .diff import normalize_entry_path
from .interfaces import Pathish


def _is_within_base(real_base_dir: str, candidate: str) -> bool:
    """
    Determine whether the candidate path resides within the given base directory.

    Returns:
        True if the candidate path is inside `real_base_dir`, False otherwise.
    """
    try:
        return os.path.commonpath([real_base_dir, candidate]) == real_base_dir
    except ValueError:
        return False


def is_safe_archive_member(member_name: str) -> bool:
    """
    Determine whether an archive member name is safe to join onto a base directory.

    Returns:
        `True` if the member name contains no absolute paths, parent-directory references, or null bytes, `False` otherwise.
    """
    if not member_name or member_name.startswith(("/", "\\")):
        return False
    if "\x00" in member_name:
        return False
    normalized = os.path.normpath(normalize_entry_path(member_name))
    if os.path.isabs(normalized) or os.path.splitdrive(normalized)[0]:
        return False
    if normalized == "..":
        return False
    if normalized.startswith(f"..{os.sep}"):
        return False
    if os.altsep and normalized.startswith(f"..{os.altsep}"):
        return False
    return True


def safe_join(base_dir: Pathish, relative_path: str) -> Path:
    """
    Resolve `relative_path` under `base_dir` and prevent directory traversal.

    Parameters:
        base_dir (Pathish): Base directory the result must stay inside.
        relative_path (str): Forward- or back-slash separated relative path.

    Returns:
        Path: Absolute, normalized path inside `base_dir`.

    Raises:
        PathValidationError: If the resolved path is outside `base_dir`.
    """
    if not is_safe_archive_member(relative_path):
        raise PathValidationError(
            f"Unsafe relative path '{relative_path}'", path=relative_path
        )

    real_base_dir = os.path.realpath(str(base_dir))
    parts = [part for part in normalize_entry_path(relative_path).split("/") if part]
    normalized_path = os.path.realpath(os.path.join(real_base_dir, *parts))

    if not _is_within_base(real_base_dir, normalized_path):
        raise PathValidationError(
            f"Path '{relative_path}' is outside base '{base_dir}'",
            path=relative_path,
        )
    return Path(normalized_path)


def list_archive_entries(archive_path: Pathish) -> Set[str]:
    """
    List the file entries of a zip archive as normalized relative paths.

    Directory-only entries (empty file-name component) are skipped. Paths that
    differ only by case are collapsed, keeping the first spelling.

    Raises:
        zipfile.BadZipFile: If the archive cannot be opened.
        OSError: If the archive cannot be read.
    """
    entries: Set[str] = set()
    seen: Set[str] = set()
    with zipfile.ZipFile(str(archive_path), "r") as zf:
        for info in zf.infolist():
            path = normalize_entry_path(info.filename)
            if not os.path.basename(path):
                continue
            key = path.lower()
            if key in seen:
                continue
            seen.add(key)
            entries.add(path)
    return entries


def scratch_archive_name(template: str, version: str) -> str:
    """
    Format a scratch archive file name from `template` and a release version.

    Path separators and NUL bytes in `version` are replaced with "_" so the name
    always stays a single component inside the scratch directory.
    """
    safe_version = "".join(
        "_" if ch in ("/", "\\", "\x00") else ch for ch in version
    )
    name = template.format(version=safe_version)
    if os.path.basename(name) != name or name in (".", ".."):
        raise PathValidationError(f"Unsafe scratch file name '{name}'", path=name)
    return name


@contextlib.contextmanager
def scratch_directory(root: Pathish, name: str) -> Iterator[Path]:
    """
    Create `root/name` for the duration of the block and remove it afterwards.

    Removal happens on every exit path; a failure to remove is logged and
    does not mask the block's own outcome.
    """
    path = Path(root) / name
    path.mkdir(parents=True, exist_ok=True)
    try:
        yield path
    finally:
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove scratch directory %s: %s", path, e)


def remove_file_quietly(file_path: Pathish) -> bool:
    """
    Remove a single file, logging instead of raising on failure.

    Returns:
        bool: `True` if the file is gone afterwards, `False` on error.
    """
    try:
        os.remove(str(file_path))
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning("Could not remove temporary file %s: %s", file_path, e)
        return False
    return True


def _atomic_write(
    file_path: Pathish, writer_func: Callable[[Any], None], suffix: str = ".tmp"
) -> bool:
    """
    Write data to a file atomically by writing to a temporary file and atomically replacing the target on success.

    Parameters:
        file_path (Pathish): Destination file path to be written.
        writer_func (Callable[[Any], None]): Callable that receives an open text file-like object and writes the desired content to it.
        suffix (str): Suffix to use for the temporary file name (default ".tmp").

    Returns:
        bool: `True` if the temporary write and atomic replace succeeded, `False` on any error.
    """
    file_path = str(file_path)
    try:
        temp_fd, temp_path = tempfile.mkstemp(
            dir=os.path.dirname(file_path) or ".", prefix="tmp-", suffix=suffix
        )
    except OSError as e:
        logger.error(f"Could not create temporary file for {file_path}: {e}")
        return False

    try:
        with os.fdopen(temp_fd, "w", encoding="utf-8") as temp_f:
            writer_func(temp_f)
        os.replace(temp_path, file_path)
    except (IOError, UnicodeEncodeError, OSError) as e:
        logger.error(f"Could not write to {file_path}: {e}")
        return False
    finally:
        if os.path.exists(temp_path):
            try:
                os.remove(temp_path)
            except OSError:
                pass
    return True
