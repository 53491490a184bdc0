"""
Lossless conversion between outer packages and signable containers.

A package and its container are the same zip archive under a different
suffix. Conversion never touches the input file; the only content change
is the manifest added by ``inject_manifest``.
"""

from __future__ import annotations

__all__ = [
    "build_manifest",
    "from_signable",
    "inject_manifest",
    "strip_signature",
    "to_signable",
]

import logging
import os
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import TYPE_CHECKING
from xml.sax.saxutils import escape as xml_escape

from ..constants import MANIFEST_PUBLISHER, MANIFEST_VERSION, SIGNABLE_EXTENSION, SIGNATURE_ENTRY
from ..errors import ManifestWriteError, UnsupportedFormatError
from .files import atomic_copy

if TYPE_CHECKING:
    from .package import PackageFormat

_logger = logging.getLogger(__name__)

_NUSPEC_NAMESPACE = "http://schemas.microsoft.com/packaging/2013/05/nuspec.xsd"


def to_signable(package_path: Path, scratch_dir: Path, package_format: PackageFormat) -> Path:
    """
    Copy a package into ``scratch_dir`` as ``<name>.nupkg``.

    Raises:
        UnsupportedFormatError: If the file is not a ``package_format`` package.
    """
    if not package_format.matches(package_path):
        raise UnsupportedFormatError(
            f"{package_path.name}: not a {package_format.extension} package"
        )
    container = scratch_dir / f"{package_path.stem}{SIGNABLE_EXTENSION}"
    shutil.copyfile(package_path, container)
    _logger.debug("Converted %s -> %s", package_path.name, container)
    return container


def build_manifest(name: str, publisher: str = MANIFEST_PUBLISHER) -> str:
    """Render the placeholder manifest describing a container called ``name``."""
    package_id = xml_escape(f"{name}_Signed")
    return f"""\
<?xml version="1.0" encoding="utf-8"?>
<package xmlns="{_NUSPEC_NAMESPACE}">
  <metadata>
    <id>{package_id}</id>
    <version>{MANIFEST_VERSION}</version>
    <authors>{xml_escape(publisher)}</authors>
    <description>{package_id}</description>
  </metadata>
</package>
"""


def inject_manifest(container_path: Path, publisher: str = MANIFEST_PUBLISHER) -> str:
    """
    Add ``<name>.nuspec`` to the container.

    Returns:
        Name of the added entry.

    Raises:
        ManifestWriteError: If the container cannot be opened for update or
            already carries a manifest of that name.
    """
    name = container_path.stem
    entry = f"{name}.nuspec"
    if not zipfile.is_zipfile(container_path):
        raise ManifestWriteError(f"Cannot add manifest to {container_path.name}: not a zip archive")
    try:
        with zipfile.ZipFile(container_path, "a") as archive:
            if entry in archive.namelist():
                raise ManifestWriteError(f"{container_path.name} already contains {entry}")
            archive.writestr(entry, build_manifest(name, publisher), zipfile.ZIP_DEFLATED)
    except (zipfile.BadZipFile, OSError) as e:
        raise ManifestWriteError(f"Cannot add manifest to {container_path.name}: {e}") from e
    _logger.debug("Added %s to %s", entry, container_path.name)
    return entry


def from_signable(container_path: Path, output_dir: Path, output_name: str) -> Path:
    """
    Publish a container as ``output_dir/output_name``.

    The file is copied under a temporary name and renamed into place, so
    ``output_name`` never exists half-written.

    Raises:
        UnsupportedFormatError: If the source is not a ``.nupkg`` container.
    """
    if container_path.suffix.lower() != SIGNABLE_EXTENSION:
        raise UnsupportedFormatError(
            f"{container_path.name}: not a {SIGNABLE_EXTENSION} container"
        )
    destination = output_dir / output_name
    atomic_copy(container_path, destination)
    _logger.debug("Converted %s -> %s", container_path.name, destination)
    return destination


def strip_signature(container_path: Path) -> bool:
    """
    Remove an existing signature and its manifest so the container can be
    signed again.

    Returns:
        True if a signature was removed, False if there was none.

    Raises:
        ManifestWriteError: If the container cannot be read or rewritten.
    """
    dropped = {SIGNATURE_ENTRY, f"{container_path.stem}.nuspec"}
    fd, tmp_name = tempfile.mkstemp(dir=container_path.parent, suffix=".tmp")
    os.close(fd)
    tmp = Path(tmp_name)
    try:
        with zipfile.ZipFile(container_path) as source:
            if SIGNATURE_ENTRY not in source.namelist():
                return False
            with zipfile.ZipFile(tmp, "w") as target:
                for info in source.infolist():
                    if info.filename not in dropped:
                        target.writestr(info, source.read(info))
        tmp.replace(container_path)
    except (zipfile.BadZipFile, OSError) as e:
        raise ManifestWriteError(
            f"Cannot remove previous signature from {container_path.name}: {e}"
        ) from e
    finally:
        tmp.unlink(missing_ok=True)
    _logger.debug("Removed previous signature from %s", container_path.name)
    return True
