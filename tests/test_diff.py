"""Tests for archive listing and the previous-vs-current diff."""

import pytest

from melonkit.download.diff import compute_obsolete_entries, normalize_entry_path
from melonkit.download.files import list_archive_entries

pytestmark = [pytest.mark.unit, pytest.mark.core_downloads]


def test_normalize_entry_path_converts_backslashes():
    assert normalize_entry_path("Mods\\Sub\\a.dll") == "Mods/Sub/a.dll"
    assert normalize_entry_path("plain.txt") == "plain.txt"


class TestComputeObsoleteEntries:
    def test_basic_difference(self):
        previous = {"A/x.dll", "A/y.dll", "B/z.cfg"}
        current = {"A/x.dll", "C/w.dll"}

        assert compute_obsolete_entries(previous, current) == {"A/y.dll", "B/z.cfg"}

    def test_comparison_ignores_case(self):
        previous = {"Mods/Plugin.DLL", "Mods/Other.dll"}
        current = {"mods/plugin.dll"}

        assert compute_obsolete_entries(previous, current) == {"Mods/Other.dll"}

    def test_comparison_ignores_separator_style(self):
        previous = {"Mods\\a.dll", "Mods\\b.dll"}
        current = {"Mods/a.dll"}

        assert compute_obsolete_entries(previous, current) == {"Mods/b.dll"}

    def test_identical_listings_yield_nothing(self):
        entries = {"a.dll", "b/c.dll"}
        assert compute_obsolete_entries(entries, set(entries)) == set()

    def test_empty_previous_yields_nothing(self):
        assert compute_obsolete_entries(set(), {"a.dll"}) == set()

    def test_empty_current_yields_everything(self):
        assert compute_obsolete_entries({"a.dll", "b.dll"}, set()) == {
            "a.dll",
            "b.dll",
        }

    def test_result_is_subset_of_previous(self):
        previous = {"a/1.dll", "a/2.dll", "b/3.dll"}
        current = {"a/2.dll", "c/4.dll"}

        obsolete = compute_obsolete_entries(previous, current)

        assert obsolete <= previous
        assert not obsolete & current


class TestListArchiveEntries:
    def test_directory_entries_excluded(self, tmp_path, zip_bytes):
        archive = tmp_path / "a.zip"
        archive.write_bytes(
            zip_bytes(
                [
                    ("Mods/", b""),
                    ("Mods/a.dll", b"a"),
                    ("UserLibs/", b""),
                    ("readme.txt", b"r"),
                ]
            )
        )

        assert list_archive_entries(archive) == {"Mods/a.dll", "readme.txt"}

    def test_backslash_names_normalized(self, tmp_path, zip_bytes):
        archive = tmp_path / "a.zip"
        archive.write_bytes(zip_bytes([("Mods\\a.dll", b"a")]))

        assert list_archive_entries(archive) == {"Mods/a.dll"}

    def test_case_variants_collapsed(self, tmp_path, zip_bytes):
        archive = tmp_path / "a.zip"
        archive.write_bytes(zip_bytes([("Mods/A.dll", b"1"), ("mods/a.dll", b"2")]))

        entries = list_archive_entries(archive)

        assert len(entries) == 1
        assert entries == {"Mods/A.dll"}

    def test_archive_listing_feeds_diff(self, tmp_path, zip_bytes):
        prev_zip = tmp_path / "prev.zip"
        curr_zip = tmp_path / "curr.zip"
        prev_zip.write_bytes(
            zip_bytes([("A/x.dll", b"1"), ("A/y.dll", b"2"), ("B/z.cfg", b"3")])
        )
        curr_zip.write_bytes(zip_bytes([("A/x.dll", b"1"), ("C/w.dll", b"4")]))

        obsolete = compute_obsolete_entries(
            list_archive_entries(prev_zip), list_archive_entries(curr_zip)
        )

        assert obsolete == {"A/y.dll", "B/z.cfg"}
