from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class ActionKind(str, Enum):
    DELETED = "deleted"
    REENCODED = "reencoded"
    CONVERTED = "converted"
    CONVERSION_REJECTED = "conversion_rejected"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class ActionResult:
    """
    Terminal outcome of processing one path.

    src_bytes is the size before this run touched the path, out_bytes what is
    left on disk for it afterwards (0 when deleted, size of the new sibling
    when converted).
    """
    kind: ActionKind
    path: Path
    src_bytes: int
    out_bytes: int
    new_path: Optional[Path] = None  # only set for CONVERTED
    reason: Optional[str] = None

    @property
    def bytes_freed(self) -> int:
        # Negative when a re-encode grew the file.
        return self.src_bytes - self.out_bytes

    @property
    def saved_percent(self) -> float:
        if self.src_bytes <= 0:
            return 0.0
        return (self.bytes_freed / self.src_bytes) * 100.0

    @property
    def removed(self) -> bool:
        """True when the original path is gone from disk."""
        return self.kind in (ActionKind.DELETED, ActionKind.CONVERTED)


def skipped(path: Path, size: int, reason: str) -> ActionResult:
    return ActionResult(kind=ActionKind.SKIPPED, path=path, src_bytes=size, out_bytes=size, reason=reason)


def failed(path: Path, size: int, reason: str) -> ActionResult:
    return ActionResult(kind=ActionKind.FAILED, path=path, src_bytes=size, out_bytes=size, reason=reason)
