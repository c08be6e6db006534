"""Tests for local mirror reconciliation."""

import pytest

from dlcatalog.errors import MirrorSyncError
from dlcatalog.file_group import group_files
from dlcatalog.file_ref import from_local
from dlcatalog.sync import download_local_files, reconcile, scan_local_files
from tests.fakes import FakeStorage, remote


def local_file(folder, name, size):
    path = folder / name
    path.write_bytes(b"\0" * size)
    return path


class TestScanLocalFiles:
    def test_creates_missing_folder(self, tmp_path):
        folder = tmp_path / "tiles"

        assert scan_local_files(folder) == []
        assert folder.is_dir()

    def test_only_matching_files(self, tmp_path):
        local_file(tmp_path, "osm.versatiles", 3)
        local_file(tmp_path, "notes.txt", 3)
        (tmp_path / "dir.versatiles").mkdir()

        files = scan_local_files(tmp_path)

        assert [f.display_name for f in files] == ["osm.versatiles"]
        assert files[0].size == 3


class TestReconcile:
    def test_deletes_unwanted_files(self, tmp_path):
        local_file(tmp_path, "old.versatiles", 10)

        report = reconcile([], scan_local_files(tmp_path), tmp_path, FakeStorage())

        assert report.deleted == ["old.versatiles"]
        assert not (tmp_path / "old.versatiles").exists()

    def test_downloads_missing_files(self, tmp_path):
        wanted = remote("new.versatiles", size=5)
        storage = FakeStorage(files=[wanted])
        tiles = tmp_path / "tiles"

        report = reconcile([wanted], [], tiles, storage)

        assert report.downloaded == ["new.versatiles"]
        assert storage.downloads == ["/home/data/new.versatiles"]
        assert (tiles / "new.versatiles").stat().st_size == 5
        assert wanted.canonical_path == str((tiles / "new.versatiles").resolve())
        assert wanted.is_remote is False
        assert sorted(p.name for p in tiles.iterdir()) == ["new.versatiles"]

    def test_keeps_files_with_matching_size(self, tmp_path):
        local_file(tmp_path, "same.versatiles", 5)
        wanted = remote("same.versatiles", size=5)
        storage = FakeStorage(files=[wanted])

        report = reconcile([wanted], scan_local_files(tmp_path), tmp_path, storage)

        assert report.kept == ["same.versatiles"]
        assert report.deleted == []
        assert storage.downloads == []
        assert wanted.canonical_path == str((tmp_path / "same.versatiles").resolve())
        assert wanted.is_remote is False

    def test_replaces_files_with_other_size(self, tmp_path):
        local_file(tmp_path, "osm.versatiles", 3)
        wanted = remote("osm.versatiles", size=7)
        storage = FakeStorage(files=[wanted])

        report = reconcile([wanted], scan_local_files(tmp_path), tmp_path, storage)

        assert report.deleted == ["osm.versatiles"]
        assert report.downloaded == ["osm.versatiles"]
        assert (tmp_path / "osm.versatiles").stat().st_size == 7

    def test_rechecks_disk_before_reuse(self, tmp_path):
        # listed locally, but gone from disk
        existing = from_local(tmp_path / "osm.versatiles", 5)
        wanted = remote("osm.versatiles", size=5)
        storage = FakeStorage(files=[wanted])

        report = reconcile([wanted], [existing], tmp_path, storage)

        assert report.downloaded == ["osm.versatiles"]
        assert (tmp_path / "osm.versatiles").stat().st_size == 5

    def test_failed_download_leaves_no_partial_file(self, tmp_path):
        wanted = remote("osm.versatiles", size=8)
        storage = FakeStorage(files=[wanted], failing_downloads=[wanted.remote_path])

        with pytest.raises(MirrorSyncError, match="/home/data/osm.versatiles"):
            reconcile([wanted], [], tmp_path, storage)

        assert list(tmp_path.iterdir()) == []
        assert wanted.is_remote is True

    def test_second_run_is_a_no_op(self, tmp_path):
        storage = FakeStorage(files=[remote("osm.versatiles", size=4), remote("b.versatiles", size=2)])

        reconcile([remote("osm.versatiles", 4), remote("b.versatiles", 2)], scan_local_files(tmp_path), tmp_path, storage)
        storage.downloads.clear()
        report = reconcile(
            [remote("osm.versatiles", 4), remote("b.versatiles", 2)], scan_local_files(tmp_path), tmp_path, storage
        )

        assert report.deleted == []
        assert report.downloaded == []
        assert storage.downloads == []
        assert sorted(report.kept) == ["b.versatiles", "osm.versatiles"]


class TestDownloadLocalFiles:
    def test_mirrors_latest_of_local_groups_only(self, tmp_path):
        files = [
            remote("osm.20240101.versatiles", size=3),
            remote("osm.20240201.versatiles", size=4),
            remote("satellite.versatiles", size=5),
        ]
        storage = FakeStorage(files=files)
        groups = group_files(files)
        local_file(tmp_path, "osm.20240101.versatiles", 3)

        report = download_local_files(groups, tmp_path, storage)

        assert report.deleted == ["osm.20240101.versatiles"]
        assert report.downloaded == ["osm.20240201.versatiles"]
        assert sorted(p.name for p in tmp_path.iterdir()) == ["osm.20240201.versatiles"]
        osm = groups[0]
        assert osm.latest_version.is_remote is False
        assert osm.older_versions[0].is_remote is True
