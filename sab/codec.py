from __future__ import annotations

import io
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol, Union

from PIL import Image, UnidentifiedImageError

from .errors import DecodeError, EncodeError
from .settings import EncodeParams


Source = Union[Path, bytes]

# Everything Pillow raises for a truncated, corrupt or oversized source.
_DECODE_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    SyntaxError,
    ValueError,
    EOFError,
    struct.error,
)


@dataclass(frozen=True)
class ImageMeta:
    width: int
    height: int
    format: Optional[str]  # lowercase Pillow format name, e.g. "jpeg"
    frames: int = 1


class Codec(Protocol):
    """What the transcode engine needs from an image library."""

    def metadata(self, path: Path) -> ImageMeta: ...

    def resize_encode(self, source: Source, params: EncodeParams, fmt: str) -> bytes: ...


def fit_inside(width: int, height: int, params: EncodeParams) -> tuple[int, int]:
    """
    Target size for a "fit inside" resize.

    The result keeps the aspect ratio, fits the (max_width, max_height) box and
    never exceeds the original size unless params.allow_upscale is set.
    """
    if params.max_width is None and params.max_height is None:
        return width, height

    max_w = params.max_width if params.max_width is not None else width
    max_h = params.max_height if params.max_height is not None else height

    # compute scale factor that keeps aspect ratio
    scale = min(max_w / width, max_h / height)

    if not params.allow_upscale and scale >= 1.0:
        return width, height

    new_w = max(1, round(width * scale))
    new_h = max(1, round(height * scale))
    return new_w, new_h


def _has_alpha(im: Image.Image) -> bool:
    if im.mode in ("RGBA", "LA", "PA"):
        return True
    if im.mode == "P" and "transparency" in im.info:
        return True
    return False


def _flatten_alpha(im: Image.Image, background_rgb: tuple[int, int, int]) -> Image.Image:
    # Ensure we are in RGBA so alpha exists
    rgba = im.convert("RGBA")
    bg = Image.new("RGBA", rgba.size, background_rgb + (255,))
    comp = Image.alpha_composite(bg, rgba)
    return comp.convert("RGB")


class PillowCodec:
    """
    Codec backed by Pillow.

    Encoder knobs that are not part of a Policy (PNG compression level, WebP
    method, ...) live here since they are properties of the encoder, not of
    the site's budget.
    """

    def __init__(
        self,
        jpeg_progressive: bool = True,
        jpeg_optimize: bool = True,
        png_compress_level: int = 9,  # 0-9, higher = smaller but slower
        png_optimize: bool = True,
        webp_method: int = 4,  # 0-6, higher = smaller but slower
        avif_speed: int = 6,  # 0-10, lower = smaller but slower
        jpeg_background: tuple[int, int, int] = (255, 255, 255),
    ) -> None:
        self.jpeg_progressive = jpeg_progressive
        self.jpeg_optimize = jpeg_optimize
        self.png_compress_level = png_compress_level
        self.png_optimize = png_optimize
        self.webp_method = webp_method
        self.avif_speed = avif_speed
        self.jpeg_background = jpeg_background

        # One entry per output format; a format missing here cannot be encoded.
        self._encoders: dict[str, Callable[[Image.Image, EncodeParams], tuple[Image.Image, dict]]] = {
            "jpeg": self._jpeg,
            "png": self._png,
            "gif": self._gif,
            "webp": self._webp,
            "avif": self._avif,
        }

    # ----- collaborator API -----

    def metadata(self, path: Path) -> ImageMeta:
        try:
            with Image.open(path) as im:
                fmt = im.format.lower() if im.format else None
                frames = int(getattr(im, "n_frames", 1))
                if fmt == "mpo":
                    # Camera JPEG with embedded previews; frame 0 is the photo.
                    fmt, frames = "jpeg", 1
                return ImageMeta(width=im.width, height=im.height, format=fmt, frames=frames)
        except _DECODE_ERRORS as e:
            raise DecodeError(Path(path), str(e) or type(e).__name__) from e

    def resize_encode(self, source: Source, params: EncodeParams, fmt: str) -> bytes:
        encoder = self._encoders.get(fmt)
        if encoder is None:
            raise EncodeError(fmt, "no encoder for this format")

        src = io.BytesIO(source) if isinstance(source, bytes) else source
        path = None if isinstance(source, bytes) else Path(source)

        try:
            with Image.open(src) as opened:
                opened.load()
                im = self._resize(opened, params)
                if im is opened:
                    # Closing the source invalidates its pixel data.
                    im = opened.copy()
        except _DECODE_ERRORS as e:
            raise DecodeError(path, str(e) or type(e).__name__) from e

        try:
            im, kwargs = encoder(im, params)
            buf = io.BytesIO()
            # Pillow chooses the encoder by format=..., there is no filename here
            im.save(buf, format=fmt.upper(), **kwargs)
        except (OSError, ValueError, KeyError) as e:
            raise EncodeError(fmt, str(e) or type(e).__name__) from e

        return buf.getvalue()

    # ----- internals -----

    def _resize(self, im: Image.Image, params: EncodeParams) -> Image.Image:
        w, h = im.size
        new_size = fit_inside(w, h, params)
        if new_size == (w, h):
            return im
        return im.resize(new_size, Image.Resampling.LANCZOS)

    def _jpeg(self, im: Image.Image, params: EncodeParams) -> tuple[Image.Image, dict]:
        # If the image has alpha, flatten onto background.
        if _has_alpha(im):
            im = _flatten_alpha(im, self.jpeg_background)
        elif im.mode not in ("RGB", "L", "CMYK"):
            im = im.convert("RGB")
        return im, {
            "quality": int(params.quality),
            "optimize": self.jpeg_optimize,
            "progressive": self.jpeg_progressive,
        }

    def _png(self, im: Image.Image, params: EncodeParams) -> tuple[Image.Image, dict]:
        # PNG is lossless: quality has no effect, only the deflate settings do.
        return im, {
            "compress_level": self.png_compress_level,
            "optimize": self.png_optimize,
        }

    def _gif(self, im: Image.Image, params: EncodeParams) -> tuple[Image.Image, dict]:
        return im, {"optimize": True}

    def _webp(self, im: Image.Image, params: EncodeParams) -> tuple[Image.Image, dict]:
        im = im.convert("RGBA") if _has_alpha(im) else im.convert("RGB")
        return im, {
            "quality": int(params.quality),
            "lossless": False,
            "method": self.webp_method,
        }

    def _avif(self, im: Image.Image, params: EncodeParams) -> tuple[Image.Image, dict]:
        im = im.convert("RGBA") if _has_alpha(im) else im.convert("RGB")
        return im, {
            "quality": int(params.quality),
            "speed": self.avif_speed,
        }
