"""
Tests for the concurrent downloader.

Covers placement under the base path, collision-safe naming, cleanup of
partial files and per-entry failure isolation.
"""
from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from asset_restore.downloader import Downloader, open_unique, prepare_base_path
from asset_restore.errors import StorageError
from asset_restore.manifest import ManifestEntry


class TestOpenUnique:

    def test_free_name_is_used_as_is(self, tmp_path):
        path, f = open_unique(tmp_path / "clip.mov")
        f.close()
        assert path == tmp_path / "clip.mov"

    def test_suffix_goes_before_extension(self, tmp_path):
        (tmp_path / "clip.mov").write_bytes(b"old")
        (tmp_path / "clip_1.mov").write_bytes(b"old")

        path, f = open_unique(tmp_path / "clip.mov")
        f.close()

        assert path == tmp_path / "clip_2.mov"

    def test_name_without_extension(self, tmp_path):
        (tmp_path / "README").write_bytes(b"old")

        path, f = open_unique(tmp_path / "README")
        f.close()

        assert path == tmp_path / "README_1"


def test_prepare_base_path_creates_nested_dirs(tmp_path):
    base = prepare_base_path(str(tmp_path / "a" / ".." / "b" / "c"))
    assert base == tmp_path / "b" / "c"
    assert base.is_dir()


def test_prepare_base_path_rejects_file(tmp_path):
    (tmp_path / "file").write_text("x")
    with pytest.raises(OSError):
        prepare_base_path(tmp_path / "file")


class TestDownloader:
    """Download runs against the fake store."""

    def test_places_keys_under_base(self, store, tmp_path):
        store.add("b", "a/b.txt", b"hello")
        base = tmp_path / "dest"

        report = Downloader(store, workers=2).download_all([ManifestEntry("b", "a/b.txt")], base)

        assert (base / "a" / "b.txt").read_bytes() == b"hello"
        assert len(report.succeeded) == 1
        assert report.total_bytes == 5
        assert report.failed == []

    def test_existing_file_is_not_overwritten(self, store, tmp_path):
        store.add("b", "a/b.txt", b"new")
        (tmp_path / "a").mkdir()
        (tmp_path / "a" / "b.txt").write_bytes(b"old")

        report = Downloader(store).download_all([ManifestEntry("b", "a/b.txt")], tmp_path)

        assert (tmp_path / "a" / "b.txt").read_bytes() == b"old"
        assert (tmp_path / "a" / "b_1.txt").read_bytes() == b"new"
        assert report.succeeded[0].path == tmp_path / "a" / "b_1.txt"

    def test_failure_is_isolated(self, store, tmp_path):
        store.add("b", "p/1.bin", b"1" * 10)
        store.add("b", "p/2.bin", b"2" * 10)
        store.add("b", "p/3.bin", b"3" * 10)
        store.fail_open("b", "p/2.bin", StorageError("InvalidObjectState"))
        entries = [ManifestEntry("b", f"p/{i}.bin") for i in (1, 2, 3)]

        report = Downloader(store, workers=3).download_all(entries, tmp_path)

        assert sorted(o.entry.key for o in report.succeeded) == ["p/1.bin", "p/3.bin"]
        assert [o.entry.key for o in report.failed] == ["p/2.bin"]
        assert "InvalidObjectState" in report.failed[0].error
        assert sorted(os.listdir(tmp_path / "p")) == ["1.bin", "3.bin"]

    def test_partial_file_is_removed(self, store, tmp_path):
        store.add("b", "p/big.bin", b"x" * 100)
        store.break_body("b", "p/big.bin", fail_after=40)

        report = Downloader(store, chunk_size=16).download_all(
            [ManifestEntry("b", "p/big.bin")], tmp_path)

        assert len(report.failed) == 1
        assert not (tmp_path / "p" / "big.bin").exists()

    def test_unsafe_key_is_rejected(self, store, tmp_path):
        store.add("b", "../escape.txt", b"x")
        base = tmp_path / "dest"

        report = Downloader(store).download_all([ManifestEntry("b", "../escape.txt")], base)

        assert len(report.failed) == 1
        assert "unsafe path" in report.failed[0].error
        assert not (tmp_path / "escape.txt").exists()
        assert store.open_calls == []

    def test_many_entries_with_small_pool(self, store, tmp_path):
        entries = []
        for i in range(25):
            store.add("b", f"p/d{i % 3}/f{i}.dat", str(i).encode())
            entries.append(ManifestEntry("b", f"p/d{i % 3}/f{i}.dat"))

        report = Downloader(store, workers=4).download_all(entries, tmp_path)

        assert len(report.succeeded) == 25
        assert (tmp_path / "p" / "d1" / "f7.dat").read_bytes() == b"7"

    def test_same_key_twice_gets_two_files(self, store, tmp_path):
        store.add("b1", "p/x.txt", b"one")
        store.add("b2", "p/x.txt", b"two")
        entries = [ManifestEntry("b1", "p/x.txt"), ManifestEntry("b2", "p/x.txt")]

        report = Downloader(store, workers=2).download_all(entries, tmp_path)

        assert len(report.succeeded) == 2
        contents = sorted(p.read_bytes() for p in (tmp_path / "p").iterdir())
        assert contents == [b"one", b"two"]

    def test_invalid_worker_count(self, store):
        with pytest.raises(ValueError):
            Downloader(store, workers=0)


class TestOwnership:
    """chown is mocked; tests do not run as root."""

    def test_created_dirs_and_file_are_chowned(self, store, tmp_path):
        store.add("b", "a/b/c.txt", b"x")
        (tmp_path / "a").mkdir()

        with patch("asset_restore.downloader.os.chown") as chown:
            report = Downloader(store, ownership=(1000, 1001)).download_all(
                [ManifestEntry("b", "a/b/c.txt")], tmp_path)

        assert report.failed == []
        chowned = [call.args[0] for call in chown.call_args_list]
        # a/ already existed and is left alone
        assert chowned == [tmp_path / "a" / "b", tmp_path / "a" / "b" / "c.txt"]
        assert all(call.args[1:] == (1000, 1001) for call in chown.call_args_list)

    def test_created_base_dirs_are_chowned(self, store, tmp_path):
        store.add("b", "x.txt", b"x")
        base = tmp_path / "restored" / "proj"

        with patch("asset_restore.downloader.os.chown") as chown:
            report = Downloader(store, ownership=(1000, 1001)).download_all(
                [ManifestEntry("b", "x.txt")], base)

        assert report.failed == []
        chowned = [call.args[0] for call in chown.call_args_list]
        # tmp_path already existed and is left alone
        assert chowned == [tmp_path / "restored", base, base / "x.txt"]

    def test_base_dirs_not_chowned_without_ownership(self, tmp_path):
        with patch("asset_restore.downloader.os.chown") as chown:
            prepare_base_path(tmp_path / "new")

        chown.assert_not_called()

    def test_no_chown_without_ownership(self, store, tmp_path):
        store.add("b", "x.txt", b"x")

        with patch("asset_restore.downloader.os.chown") as chown:
            Downloader(store).download_all([ManifestEntry("b", "x.txt")], tmp_path)

        chown.assert_not_called()

    def test_chown_failure_keeps_file(self, store, tmp_path):
        store.add("b", "x.txt", b"data")

        with patch("asset_restore.downloader.os.chown", side_effect=PermissionError("denied")):
            report = Downloader(store, ownership=(1000, 1000)).download_all(
                [ManifestEntry("b", "x.txt")], tmp_path)

        assert len(report.failed) == 1
        assert "ownership" in report.failed[0].error
        assert (tmp_path / "x.txt").read_bytes() == b"data"
