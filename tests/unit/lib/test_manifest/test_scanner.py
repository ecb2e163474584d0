"""Unit tests for directory scanning and checksums."""

import hashlib
from pathlib import Path

import pytest

from dataset_catalog.lib.manifest import ChecksumAlgorithm, file_checksum, scan_directory


class TestFileChecksum:
    """Tests for file_checksum()."""

    def test_sha256_matches_hashlib(self, tmp_path: Path) -> None:
        path = tmp_path / "data.bin"
        path.write_bytes(b"beamline" * 1000)
        assert file_checksum(path) == hashlib.sha256(b"beamline" * 1000).hexdigest()

    def test_md5(self, tmp_path: Path) -> None:
        path = tmp_path / "data.bin"
        path.write_bytes(b"x")
        assert file_checksum(path, ChecksumAlgorithm.MD5) == hashlib.md5(b"x").hexdigest()  # noqa: S324


class TestScanDirectory:
    """Tests for scan_directory()."""

    def test_lists_files_sorted_with_relative_paths(self, tmp_path: Path) -> None:
        (tmp_path / "b").mkdir()
        (tmp_path / "b" / "two.dat").write_bytes(b"22")
        (tmp_path / "a.dat").write_bytes(b"1")
        (tmp_path / "c.dat").write_bytes(b"")

        entries = scan_directory(tmp_path)

        assert [e.path for e in entries] == ["a.dat", "b/two.dat", "c.dat"]
        assert [e.size for e in entries] == [1, 2, 0]
        assert entries[1].checksum == hashlib.sha256(b"22").hexdigest()
        assert entries[0].time is not None
        assert entries[0].perm is not None

    def test_skips_directories(self, tmp_path: Path) -> None:
        (tmp_path / "empty").mkdir()
        assert scan_directory(tmp_path) == []

    def test_not_a_directory(self, tmp_path: Path) -> None:
        path = tmp_path / "file.txt"
        path.write_text("x")
        with pytest.raises(NotADirectoryError):
            scan_directory(path)
