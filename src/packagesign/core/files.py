"""
Filesystem helpers shared by the converter and the workflows.

Output files are only ever published with an atomic rename, and scratch
space is always a fresh private directory.
"""

from __future__ import annotations

__all__ = [
    "archive_prefix_length",
    "atomic_copy",
    "atomic_write",
    "create_archive",
    "extract_archive",
    "scratch_directory",
]

import logging
import os
import shutil
import tempfile
import zipfile
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from ..constants import SCRATCH_PREFIX

if TYPE_CHECKING:
    import contextlib

_logger = logging.getLogger(__name__)


def scratch_directory() -> contextlib.AbstractContextManager[str]:
    """Private temporary directory, removed with its contents on exit."""
    return tempfile.TemporaryDirectory(prefix=SCRATCH_PREFIX)


def atomic_write(path: Path, data: bytes, mode: int | None = None) -> None:
    """Replace ``path`` with ``data`` through a sibling temp file and a rename.

    ``mode``, when given, is applied to the temp file before the rename
    (ignored on Windows).
    """
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        os.write(fd, data)
        os.fsync(fd)
        os.close(fd)
        fd = -1
        if mode is not None and os.name != "nt":
            tmp.chmod(mode)
        tmp.replace(path)
    except BaseException:
        if fd >= 0:
            os.close(fd)
        tmp.unlink(missing_ok=True)
        raise


def atomic_copy(source: Path, destination: Path) -> None:
    """Copy ``source`` to ``destination`` so the target appears complete or not at all."""
    fd, tmp_path = tempfile.mkstemp(dir=destination.parent, suffix=".tmp")
    os.close(fd)
    tmp = Path(tmp_path)
    try:
        shutil.copyfile(source, tmp)
        tmp.replace(destination)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def archive_prefix_length(archive: zipfile.ZipFile) -> int:
    """Number of bytes stored in front of the zip data; 0 for a well-formed archive."""
    offsets = [info.header_offset for info in archive.infolist()]
    return min(offsets) if offsets else archive.start_dir


def extract_archive(archive_path: Path, target_dir: Path) -> None:
    """
    Extract a zip archive into ``target_dir``.

    Raises:
        ValueError: If an entry would land outside ``target_dir``.
        zipfile.BadZipFile: If the archive is corrupt.
    """
    root = target_dir.resolve()
    with zipfile.ZipFile(archive_path) as archive:
        for info in archive.infolist():
            name = PurePosixPath(info.filename.replace("\\", "/"))
            if name.is_absolute() or ".." in name.parts:
                raise ValueError(f"Unsafe path in archive: {info.filename}")
            destination = (root / Path(*name.parts)).resolve() if name.parts else root
            if root != destination and root not in destination.parents:
                raise ValueError(f"Unsafe path in archive: {info.filename}")
        archive.extractall(root)


def create_archive(source_dir: Path, archive_path: Path) -> None:
    """Zip the contents of ``source_dir`` (paths relative to it) into ``archive_path``."""
    with zipfile.ZipFile(archive_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for path in sorted(source_dir.rglob("*")):
            if path.is_file():
                archive.write(path, path.relative_to(source_dir).as_posix())
    _logger.debug("Archived %s -> %s", source_dir, archive_path.name)
