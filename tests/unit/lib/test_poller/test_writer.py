"""Unit tests for the atomic file writer."""

import os
import stat
from pathlib import Path

import pytest

from knot_downloader.lib.poller.errors import WriteError
from knot_downloader.lib.poller.writer import read_current, write_file


class TestReadCurrent:
    """Tests for read_current()."""

    def test_returns_bytes(self, tmp_path: Path) -> None:
        file = tmp_path / "zone.rpz"
        file.write_bytes(b"zone A")
        assert read_current(file) == b"zone A"

    def test_missing_file_returns_none(self, tmp_path: Path) -> None:
        assert read_current(tmp_path / "missing.rpz") is None

    def test_directory_returns_none(self, tmp_path: Path) -> None:
        assert read_current(tmp_path) is None


class TestWriteFile:
    """Tests for write_file()."""

    def test_writes_new_file(self, tmp_path: Path) -> None:
        dest = tmp_path / "zone.rpz"
        write_file(dest, b"zone A")
        assert dest.read_bytes() == b"zone A"

    def test_replaces_existing_file(self, tmp_path: Path) -> None:
        dest = tmp_path / "zone.rpz"
        dest.write_bytes(b"old zone content that is longer")
        write_file(dest, b"new")
        assert dest.read_bytes() == b"new"

    def test_accepts_string_path(self, tmp_path: Path) -> None:
        dest = tmp_path / "zone.rpz"
        write_file(str(dest), b"zone A")
        assert dest.read_bytes() == b"zone A"

    def test_no_part_files_left_behind(self, tmp_path: Path) -> None:
        dest = tmp_path / "zone.rpz"
        write_file(dest, b"zone A")
        write_file(dest, b"zone B")
        assert [p.name for p in tmp_path.iterdir()] == ["zone.rpz"]

    def test_missing_parent_without_create_dirs_fails(self, tmp_path: Path) -> None:
        dest = tmp_path / "nested" / "dir" / "zone.rpz"
        with pytest.raises(WriteError, match="Parent directory does not exist") as exc_info:
            write_file(dest, b"zone A", create_dirs=False)
        assert exc_info.value.path == str(dest)
        assert not dest.parent.exists()

    def test_missing_parent_with_create_dirs_succeeds(self, tmp_path: Path) -> None:
        dest = tmp_path / "nested" / "dir" / "zone.rpz"
        write_file(dest, b"zone A", create_dirs=True)
        assert dest.read_bytes() == b"zone A"

    def test_directory_creation_failure(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_bytes(b"not a directory")
        with pytest.raises(WriteError, match="Failed to create directories"):
            write_file(blocker / "zone.rpz", b"zone A", create_dirs=True)

    def test_rename_failure_keeps_prior_content(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        dest = tmp_path / "zone.rpz"
        dest.write_bytes(b"zone A")

        def _fail_replace(src: str, dst: str) -> None:
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(os, "replace", _fail_replace)

        with pytest.raises(WriteError, match="No space left on device"):
            write_file(dest, b"zone B")

        assert dest.read_bytes() == b"zone A"
        assert [p.name for p in tmp_path.iterdir()] == ["zone.rpz"]

    def test_destination_is_directory(self, tmp_path: Path) -> None:
        dest = tmp_path / "zone.rpz"
        dest.mkdir()
        with pytest.raises(WriteError, match="Failed to write file"):
            write_file(dest, b"zone A")
        assert dest.is_dir()
        assert [p.name for p in tmp_path.iterdir()] == ["zone.rpz"]

    def test_empty_content(self, tmp_path: Path) -> None:
        dest = tmp_path / "zone.rpz"
        dest.write_bytes(b"zone A")
        write_file(dest, b"")
        assert dest.read_bytes() == b""

    @pytest.mark.parametrize("mode", [0o644, 0o640, 0o600])
    def test_replacement_keeps_existing_mode(self, tmp_path: Path, mode: int) -> None:
        dest = tmp_path / "zone.rpz"
        dest.write_bytes(b"zone A")
        dest.chmod(mode)

        write_file(dest, b"zone B")

        assert stat.S_IMODE(dest.stat().st_mode) == mode
        assert dest.read_bytes() == b"zone B"

    def test_new_file_follows_umask(self, tmp_path: Path) -> None:
        umask = os.umask(0o022)
        os.umask(umask)
        dest = tmp_path / "zone.rpz"

        write_file(dest, b"zone A")

        assert stat.S_IMODE(dest.stat().st_mode) == 0o666 & ~umask

    def test_parent_directory_is_synced(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        dest = tmp_path / "zone.rpz"
        synced: list[int] = []
        real_fsync = os.fsync

        def _record_fsync(fd: int) -> None:
            synced.append(os.fstat(fd).st_mode)
            real_fsync(fd)

        monkeypatch.setattr(os, "fsync", _record_fsync)

        write_file(dest, b"zone A")

        assert [stat.S_ISREG(m) for m in synced] == [True, False]
        assert stat.S_ISDIR(synced[-1])
