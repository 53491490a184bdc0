"""Package signing engine: CMS author signatures inside zip containers."""

from __future__ import annotations

from .engine import EngineVerifyResult, SigningEngine
from .timestamp import HttpTimestamper, Timestamper

__all__ = ["EngineVerifyResult", "HttpTimestamper", "SigningEngine", "Timestamper"]
