from __future__ import annotations

from dataclasses import replace
from pathlib import Path
import logging
import os
import stat
import tempfile
from typing import Optional

from .classify import EXT_TO_FORMAT, FORMAT_TO_EXT, is_vector, read_metadata
from .codec import Codec, ImageMeta, PillowCodec
from .errors import DecodeError, EncodeError, FileSystemError
from .policy import plan_optimization
from .results import ActionKind, ActionResult, failed, skipped
from .settings import TEMP_SUFFIX, EncodeParams, OptimizeSettings
from .walker import file_size

logger = logging.getLogger(__name__)


def delete_file(path: Path) -> ActionResult:
    path = Path(path)
    try:
        size = path.stat().st_size
        path.unlink()
    except FileNotFoundError:
        return skipped(path, 0, "vanished")
    except OSError as e:
        logger.warning("Failed to delete %s: %s", path, e)
        return failed(path, file_size(path), f"unlink: {e}")

    return ActionResult(kind=ActionKind.DELETED, path=path, src_bytes=size, out_bytes=0)


def reencode_in_place(
    path: Path,
    params: EncodeParams,
    fmt: str,
    codec: Codec,
    *,
    only_if_smaller: bool = False,
) -> ActionResult:
    """
    Resize-fit and re-encode path in its own format, replacing it atomically.

    The new bytes go to a temp sibling first and are renamed over the original
    only once everything succeeded; on any failure the original is untouched.
    """
    path = Path(path)
    src_bytes = file_size(path)

    try:
        data = codec.resize_encode(path, params, fmt)
    except DecodeError as e:
        logger.warning("Skipping %s: cannot decode (%s)", path, e.reason)
        return skipped(path, src_bytes, "undecodable")
    except EncodeError as e:
        logger.warning("Re-encoding %s failed: %s", path, e.reason)
        return failed(path, src_bytes, f"encode: {e.reason}")

    if only_if_smaller and len(data) >= src_bytes:
        return skipped(path, src_bytes, "not_smaller")

    try:
        tmp_path = _write_temp(path, data)
        try:
            _move(tmp_path, path)
        finally:
            # No-op once the rename went through.
            _discard(tmp_path)
    except FileSystemError as e:
        logger.warning("Re-encoding %s failed: %s", path, e.reason)
        return failed(path, src_bytes, e.reason)

    return ActionResult(kind=ActionKind.REENCODED, path=path, src_bytes=src_bytes, out_bytes=len(data))


def convert_format(
    path: Path,
    target: str,
    params: EncodeParams,
    codec: Codec,
    *,
    max_ratio: float = 0.7,
) -> ActionResult:
    """
    Transcode path into a sibling with the target container's extension.

    The candidate is kept only when it is smaller than max_ratio * original;
    then the original is deleted. Otherwise the candidate is discarded and the
    original stays byte-identical. Exactly one of the two files is left on
    disk either way.
    """
    path = Path(path)
    src_bytes = file_size(path)

    if is_vector(path):
        return skipped(path, src_bytes, "vector")

    ext = FORMAT_TO_EXT.get(target)
    if ext is None:
        return skipped(path, src_bytes, "unsupported_target")

    new_path = path.with_suffix(ext)
    if EXT_TO_FORMAT.get(path.suffix.lower()) == target or new_path == path:
        return skipped(path, src_bytes, "already_target")
    if new_path.exists():
        # Never clobber a file we did not produce.
        return skipped(path, src_bytes, "target_exists")

    try:
        data = codec.resize_encode(path, params, target)
    except DecodeError as e:
        logger.warning("Skipping %s: cannot decode (%s)", path, e.reason)
        return skipped(path, src_bytes, "undecodable")
    except EncodeError as e:
        logger.warning("Converting %s to %s failed: %s", path, target, e.reason)
        return failed(path, src_bytes, f"encode: {e.reason}")

    try:
        tmp_path = _write_temp(path, data)
    except FileSystemError as e:
        logger.warning("Converting %s failed: %s", path, e.reason)
        return failed(path, src_bytes, e.reason)

    try:
        new_bytes = file_size(tmp_path)

        if not new_bytes < src_bytes * max_ratio:
            logger.debug(
                "Keeping %s: %s candidate is %.1f%% of original",
                path, target, _percent(new_bytes, src_bytes),
            )
            return ActionResult(
                kind=ActionKind.CONVERSION_REJECTED,
                path=path,
                src_bytes=src_bytes,
                out_bytes=src_bytes,
                reason="not_profitable",
            )

        try:
            _claim(tmp_path, new_path)
        except FileExistsError:
            logger.warning("Not converting %s: %s was created meanwhile", path, new_path.name)
            return skipped(path, src_bytes, "target_exists")
        except FileSystemError as e:
            logger.warning("Converting %s failed: %s", path, e.reason)
            return failed(path, src_bytes, e.reason)

        try:
            path.unlink()
        except OSError as e:
            # Roll back so the original remains the only copy.
            logger.warning("Cannot remove %s after conversion, keeping it: %s", path, e)
            _discard(new_path)
            return failed(path, src_bytes, f"unlink: {e}")
    finally:
        _discard(tmp_path)

    logger.info(
        "Converted %s -> %s (saved %.1f%%)",
        path, new_path.name, 100.0 - _percent(new_bytes, src_bytes),
    )
    return ActionResult(
        kind=ActionKind.CONVERTED,
        path=path,
        src_bytes=src_bytes,
        out_bytes=new_bytes,
        new_path=new_path,
    )


def optimize_asset(path: Path, s: OptimizeSettings, codec: Optional[Codec] = None) -> ActionResult:
    """
    Run the optimization plan for one file: re-encode in place, then maybe
    convert to the target container.

    Never raises for per-file problems. The returned result spans the whole
    file: src_bytes is the size before the re-encode, out_bytes what is on
    disk at the end.
    """
    codec = codec or PillowCodec()
    path = Path(path)
    src_bytes = file_size(path)
    try:
        return _optimize_asset(path, src_bytes, s, codec)
    except Exception as e:
        logger.warning("Optimizing %s failed: %s: %s", path, type(e).__name__, e)
        return failed(path, src_bytes, f"{type(e).__name__}: {e}")


def _optimize_asset(path: Path, src_bytes: int, s: OptimizeSettings, codec: Codec) -> ActionResult:
    meta: Optional[ImageMeta] = None
    if src_bytes > 0 and not is_vector(path):
        meta = read_metadata(path, codec)

    plan = plan_optimization(path, meta, src_bytes, s)
    if plan.skip:
        logger.debug("Skipping %s: %s", path, plan.skip_reason)
        return skipped(path, src_bytes, plan.skip_reason)

    r = reencode_in_place(path, plan.reencode, plan.fmt, codec, only_if_smaller=s.only_if_smaller)
    if r.kind is ActionKind.FAILED or r.reason == "undecodable":
        return r

    if r.kind is ActionKind.REENCODED and r.bytes_freed > src_bytes * s.log_threshold:
        logger.info("Optimized %s (saved %.1f%%)", path, r.saved_percent)

    if plan.convert_to is None:
        return r

    c = convert_format(path, plan.convert_to, s.convert_params, codec, max_ratio=s.max_ratio)
    if c.kind is ActionKind.SKIPPED:
        return r
    return replace(c, src_bytes=src_bytes)


def _percent(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return (part / whole) * 100.0


def _write_temp(target: Path, data: bytes) -> Path:
    # Temp file lives next to target so the final rename stays on one filesystem.
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=TEMP_SUFFIX, dir=str(target.parent))
    except OSError as e:
        raise FileSystemError(target, f"cannot create temp file: {e}") from e

    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        # mkstemp creates 0600 files; keep the permissions of the file we replace.
        os.chmod(tmp_path, stat.S_IMODE(target.stat().st_mode))
    except OSError as e:
        _discard(tmp_path)
        raise FileSystemError(target, f"cannot write temp file: {e}") from e

    return tmp_path


def _move(tmp_path: Path, out_path: Path) -> None:
    try:
        os.replace(tmp_path, out_path)
    except OSError as e:
        raise FileSystemError(out_path, f"rename failed: {e}") from e


def _claim(tmp_path: Path, out_path: Path) -> None:
    """Move tmp_path to out_path, raising FileExistsError if out_path already exists."""
    try:
        fd = os.open(out_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL)
    except FileExistsError:
        raise
    except OSError as e:
        raise FileSystemError(out_path, f"cannot create: {e}") from e
    os.close(fd)
    try:
        _move(tmp_path, out_path)
    except FileSystemError:
        _discard(out_path)
        raise


def _discard(p: Path) -> None:
    try:
        p.unlink(missing_ok=True)
    except OSError as e:
        logger.debug("Could not remove %s: %s", p, e)
