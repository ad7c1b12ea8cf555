from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest
from PIL import Image

from sab.codec import ImageMeta
from sab.errors import DecodeError, EncodeError


def _write_image(path: Path, size: tuple[int, int], fmt: str, mode: str = "RGB") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    # Smooth gradient: compresses like a photo, not like noise.
    im = Image.radial_gradient("L").resize(size).convert(mode)
    im.save(path, format=fmt)
    return path


@pytest.fixture
def make_image():
    return _write_image


class FakeCodec:
    """Codec stand-in with canned answers, to drive the engine deterministically."""

    def __init__(
        self,
        meta: Optional[ImageMeta] = ImageMeta(width=100, height=100, format="png"),
        output: bytes = b"x" * 10,
        decode_error: bool = False,
        encode_error: bool = False,
        outputs: Optional[dict] = None,
    ) -> None:
        self.meta = meta
        self.output = output
        self.outputs = outputs or {}
        self.decode_error = decode_error
        self.encode_error = encode_error
        self.calls: list[tuple[Path, str]] = []

    def metadata(self, path):
        if self.decode_error or self.meta is None:
            raise DecodeError(Path(path), "bad header")
        return self.meta

    def resize_encode(self, source, params, fmt):
        self.calls.append((Path(source), fmt))
        if self.decode_error:
            raise DecodeError(Path(source), "bad data")
        if self.encode_error:
            raise EncodeError(fmt, "encoder exploded")
        return self.outputs.get(fmt, self.output)


@pytest.fixture
def fake_codec():
    return FakeCodec


def leftovers(root: Path, suffix: str = ".optimized") -> list[Path]:
    return [p for p in root.rglob("*") if p.name.endswith(suffix)]


@pytest.fixture
def temp_leftovers():
    return leftovers
