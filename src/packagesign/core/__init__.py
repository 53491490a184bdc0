"""Core package handling: formats, identities, conversion and classification."""

from __future__ import annotations

__all__: list[str] = []
