"""
Version Diff Analysis

Determines which archive entries of a previous release are absent from the
current release. The comparison works purely on entry paths: separators are
normalized to "/" and case is ignored.
"""

from typing import Iterable, Set


def normalize_entry_path(path: str) -> str:
    """Return `path` with every backslash replaced by a forward slash."""
    return path.replace("\\", "/")


def _comparison_key(path: str) -> str:
    return normalize_entry_path(path).lower()


def compute_obsolete_entries(
    previous_entries: Iterable[str], current_entries: Iterable[str]
) -> Set[str]:
    """
    Compute the entries present in the previous archive but not in the current one.

    Parameters:
        previous_entries (Iterable[str]): Entry paths of the previous release archive.
        current_entries (Iterable[str]): Entry paths of the current release archive.

    Returns:
        Set[str]: Normalized paths from `previous_entries` whose lower-cased form
        has no match in `current_entries`.
    """
    current_keys = {_comparison_key(path) for path in current_entries}
    return {
        normalize_entry_path(path)
        for path in previous_entries
        if _comparison_key(path) not in current_keys
    }
