from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .codec import Codec, ImageMeta
from .errors import DecodeError
from .settings import KNOWN_FORMATS

logger = logging.getLogger(__name__)


IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".avif"}
VECTOR_EXTS = {".svg"}

# Extension -> format tag, for the extension-equality checks.
EXT_TO_FORMAT = {
    ".jpg": "jpeg",
    ".jpeg": "jpeg",
    ".png": "png",
    ".gif": "gif",
    ".webp": "webp",
    ".avif": "avif",
}

FORMAT_TO_EXT = {
    "jpeg": ".jpg",
    "png": ".png",
    "gif": ".gif",
    "webp": ".webp",
    "avif": ".avif",
}


def is_image(path: Path) -> bool:
    return Path(path).suffix.lower() in IMAGE_EXTS


def is_vector(path: Path) -> bool:
    return Path(path).suffix.lower() in VECTOR_EXTS


def read_metadata(path: Path, codec: Codec) -> Optional[ImageMeta]:
    """Decoded metadata for path, or None (logged) when it cannot be decoded."""
    try:
        return codec.metadata(path)
    except DecodeError as e:
        logger.warning("Cannot decode %s: %s", path, e.reason)
        return None


def declared_format(path: Path, codec: Codec) -> Optional[str]:
    """Format tag from decoded metadata, None when the file cannot be decoded."""
    meta = read_metadata(path, codec)
    if meta is None or meta.format not in KNOWN_FORMATS:
        return None
    return meta.format
