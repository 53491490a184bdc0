"""Package formats and the on-disk package handle."""

from __future__ import annotations

__all__ = ["Package", "PackageFormat"]

import enum
from dataclasses import dataclass
from pathlib import Path


class PackageFormat(enum.Enum):
    """Outer package shapes understood by the tool.

    The value is the command-line tag; ``extension`` is the on-disk suffix.
    """

    SIMPLE = "dmapp"
    COMPOSITE = "dmprotocol"

    @property
    def extension(self) -> str:
        return f".{self.value}"

    @property
    def recursive_search(self) -> bool:
        """Directory inputs are searched recursively for composite packages only."""
        return self is PackageFormat.COMPOSITE

    def matches(self, path: Path) -> bool:
        return path.suffix.lower() == self.extension


@dataclass(frozen=True, slots=True)
class Package:
    """A package file on disk. Immutable; the file itself is never touched."""

    path: Path
    format: PackageFormat

    @property
    def name(self) -> str:
        """Logical name: the file name without its extension."""
        return self.path.stem

    @property
    def file_name(self) -> str:
        return self.path.name

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()
