from __future__ import annotations

from pathlib import Path
from typing import Optional


class SabError(Exception):
    """Base class for everything the pipeline raises on purpose."""


class FileSystemError(SabError):
    """stat / unlink / rename / rmtree failed for one path."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = Path(path)
        self.reason = reason


class DecodeError(SabError):
    """The codec could not read the file as an image (corrupt, truncated, unknown)."""

    def __init__(self, path: Optional[Path], reason: str) -> None:
        super().__init__(f"{path}: {reason}" if path else reason)
        self.path = Path(path) if path else None
        self.reason = reason


class EncodeError(SabError):
    """The codec failed while producing the re-encoded / converted bytes."""

    def __init__(self, fmt: str, reason: str) -> None:
        super().__init__(f"{fmt}: {reason}")
        self.fmt = fmt
        self.reason = reason


class ConfigError(SabError):
    """Invalid configuration file or CLI input."""
