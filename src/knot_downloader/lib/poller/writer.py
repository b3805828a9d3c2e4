"""Atomic persistence of fetched zone files.

Content is written to a ``.part`` temporary file next to the destination
and renamed over it, so readers only ever see the old or the new file.
"""

from __future__ import annotations

import functools
import os
import stat
import tempfile
from pathlib import Path

from knot_downloader.lib.poller.errors import WriteError


def read_current(path: str | Path) -> bytes | None:
    """Return the bytes currently stored at ``path``.

    Args:
        path: Local file path.

    Returns:
        File contents, or None if the file is missing or unreadable.
    """
    try:
        return Path(path).read_bytes()
    except OSError:
        return None


@functools.cache
def _process_umask() -> int:
    # os.umask can only be read by setting it; do that once, not per write
    # while other threads may be creating files.
    mask = os.umask(0o022)
    os.umask(mask)
    return mask


def _target_mode(dest: Path) -> int:
    """Permission bits for the new file: the old file's, or the umask default."""
    try:
        return stat.S_IMODE(dest.stat().st_mode)
    except OSError:
        return 0o666 & ~_process_umask()


def _fsync_dir(directory: Path) -> None:
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def write_file(path: str | Path, content: bytes, *, create_dirs: bool = False) -> None:
    """Atomically replace ``path`` with ``content``.

    The new file keeps the permission bits of the file it replaces, or gets
    the usual ``0666 & ~umask`` when there was none. The rename is flushed
    to disk along with the data.

    Args:
        path: Destination file path.
        content: Bytes to store.
        create_dirs: Create missing parent directories first.

    Raises:
        WriteError: If the parent directory is missing (and ``create_dirs``
            is False) or cannot be created, or if writing or renaming fails.
            The previous file, if any, is left intact.
    """
    dest = Path(path)
    parent = dest.parent

    if create_dirs:
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            msg = f"Failed to create directories for {str(dest)!r}: {exc}"
            raise WriteError(msg, path=str(dest)) from exc
    elif not parent.is_dir():
        msg = f"Parent directory does not exist for {str(dest)!r}"
        raise WriteError(msg, path=str(dest))

    # Unique temp names keep concurrent writers to the same path from
    # clobbering each other's partial files.
    try:
        fd, tmp_name = tempfile.mkstemp(dir=parent, prefix=f".{dest.name}.", suffix=".part")
    except OSError as exc:
        msg = f"Failed to write file to {str(dest)!r}: {exc}"
        raise WriteError(msg, path=str(dest)) from exc

    part_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
            # mkstemp creates 0600 files.
            os.fchmod(f.fileno(), _target_mode(dest))
            f.flush()
            os.fsync(f.fileno())
        os.replace(part_path, dest)
        _fsync_dir(parent)
    except OSError as exc:
        part_path.unlink(missing_ok=True)
        msg = f"Failed to write file to {str(dest)!r}: {exc}"
        raise WriteError(msg, path=str(dest)) from exc
