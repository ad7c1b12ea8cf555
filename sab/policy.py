from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .classify import EXT_TO_FORMAT, FORMAT_TO_EXT, is_vector
from .codec import ImageMeta
from .settings import EncodeParams, OptimizeSettings


class Decision(str, Enum):
    DELETE = "delete"
    SKIP = "skip"


def decide_deletion(size: int, max_bytes: int, *, image: bool, images_only: bool = True) -> Decision:
    """
    Size-threshold deletion: anything strictly bigger than max_bytes goes.

    In an images-only phase non-image files are never deleted.
    """
    if images_only and not image:
        return Decision.SKIP
    if size > max_bytes:
        return Decision.DELETE
    return Decision.SKIP


@dataclass(frozen=True)
class OptimizationPlan:
    """
    What the optimization phase will do to one file.

    Either skip_reason is set (nothing happens) or reencode is set, optionally
    followed by a conversion to convert_to.
    """
    reencode: Optional[EncodeParams] = None
    fmt: Optional[str] = None
    convert_to: Optional[str] = None
    skip_reason: Optional[str] = None

    @property
    def skip(self) -> bool:
        return self.skip_reason is not None


def _skip(reason: str) -> OptimizationPlan:
    return OptimizationPlan(skip_reason=reason)


def conversion_target(path: Path, fmt: str, s: OptimizeSettings) -> Optional[str]:
    """Target container for path, or None when it should stay as it is."""
    if s.convert_to is None or fmt not in s.convert_from:
        return None
    if is_vector(path):
        return None
    # Already in the target container (by extension).
    if EXT_TO_FORMAT.get(Path(path).suffix.lower()) == s.convert_to:
        return None
    if s.convert_to not in FORMAT_TO_EXT:
        return None
    return s.convert_to


def plan_optimization(path: Path, meta: Optional[ImageMeta], size: int, s: OptimizeSettings) -> OptimizationPlan:
    if size <= 0:
        return _skip("empty")
    if is_vector(path):
        return _skip("vector")
    if meta is None or not meta.width or not meta.height or meta.format is None:
        return _skip("undecodable")
    if meta.frames > 1:
        # Re-encoding keeps only the first frame.
        return _skip("animated")

    params = s.policy.get(meta.format)
    if params is None:
        return _skip("unsupported_format")

    return OptimizationPlan(
        reencode=params,
        fmt=meta.format,
        convert_to=conversion_target(path, meta.format, s),
    )
