from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterator, Literal, Mapping, Optional

from .errors import ConfigError


# Format tags as reported by the codec (lowercase Pillow format names).
Format = Literal["jpeg", "png", "gif", "webp", "avif"]

KNOWN_FORMATS = ("jpeg", "png", "gif", "webp", "avif")

# Suffix of the temp files written next to an image before it is replaced.
# Leftovers from an interrupted run are swept by the temp-cleanup pass.
TEMP_SUFFIX = ".optimized"


@dataclass(frozen=True)
class EncodeParams:
    """
    How one format gets re-encoded.

    Resizing always uses "fit inside": the image is scaled down until it fits
    the (max_width, max_height) box, keeping its aspect ratio. A missing side
    means "no limit on that side". Images already inside the box are left at
    their size unless allow_upscale is set.
    """

    quality: int = 80
    max_width: Optional[int] = None
    max_height: Optional[int] = None
    allow_upscale: bool = False

    def __post_init__(self) -> None:
        if not 0 <= int(self.quality) <= 100:
            raise ConfigError(f"quality must be within 0-100, got {self.quality}")
        for side in (self.max_width, self.max_height):
            if side is not None and side <= 0:
                raise ConfigError(f"resize box sides must be positive, got {side}")


class Policy(Mapping[str, EncodeParams]):
    """Read-only, ordered format -> EncodeParams table for one run."""

    def __init__(self, entries: Mapping[str, EncodeParams]) -> None:
        table: dict[str, EncodeParams] = {}
        for fmt, params in entries.items():
            fmt = fmt.lower()
            if fmt == "jpg":
                fmt = "jpeg"
            if fmt not in KNOWN_FORMATS:
                raise ConfigError(f"Unknown format in policy: {fmt}")
            table[fmt] = params
        self._table = MappingProxyType(table)

    def __getitem__(self, fmt: str) -> EncodeParams:
        return self._table[fmt]

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def __repr__(self) -> str:
        return f"Policy({dict(self._table)!r})"


@dataclass(frozen=True)
class DeletionPhase:
    """Delete every file under root bigger than max_bytes (images only by default)."""

    name: str
    root: Path  # relative to the project root
    max_bytes: int
    images_only: bool = True


@dataclass(frozen=True)
class OptimizeSettings:
    """
    Knobs for the optimization phase.

    Pure data like the rest of this module: the engine reads it, the CLI and
    presets build it.
    """

    # ----- Where -----
    roots: tuple[Path, ...] = ()  # relative to the project root

    # ----- Re-encode in place -----
    policy: Policy = field(default_factory=lambda: Policy({}))
    only_if_smaller: bool = False  # discard a re-encode that grew the file

    # ----- Convert format -----
    # If convert_to is None, conversion is skipped.
    convert_to: Optional[Format] = "webp"
    convert_from: frozenset[str] = frozenset({"png", "jpeg"})
    convert_params: EncodeParams = EncodeParams(quality=80)

    # Keep a converted file only when it is smaller than max_ratio * original.
    max_ratio: float = 0.7

    # Only report an in-place re-encode when it saved more than this fraction.
    log_threshold: float = 0.05

    # ----- Execution -----
    workers: int = 1


@dataclass(frozen=True)
class RunConfig:
    """One full run: temp cleanup, directory removal, deletion phases, optimization."""

    project_root: Path
    temp_suffix: str = TEMP_SUFFIX
    remove_dirs: tuple[str, ...] = ()
    deletion_phases: tuple[DeletionPhase, ...] = ()
    optimize: Optional[OptimizeSettings] = None


def _params_from_dict(data: Mapping[str, Any], where: str) -> EncodeParams:
    unknown = set(data) - {"quality", "max_width", "max_height", "allow_upscale"}
    if unknown:
        raise ConfigError(f"{where}: unknown keys {sorted(unknown)}")
    return EncodeParams(
        quality=int(data.get("quality", 80)),
        max_width=data.get("max_width"),
        max_height=data.get("max_height"),
        allow_upscale=bool(data.get("allow_upscale", False)),
    )


def config_from_dict(data: Mapping[str, Any], project_root: Path) -> RunConfig:
    """Build a RunConfig from a parsed JSON config (same shape as the presets)."""
    try:
        phases = tuple(
            DeletionPhase(
                name=str(p.get("name", p["root"])),
                root=Path(p["root"]),
                max_bytes=int(p["max_bytes"]),
                images_only=bool(p.get("images_only", True)),
            )
            for p in data.get("deletion_phases", [])
        )

        optimize = None
        opt = data.get("optimize")
        if opt is not None:
            policy = Policy(
                {fmt: _params_from_dict(v, f"policy.{fmt}") for fmt, v in opt.get("policy", {}).items()}
            )
            convert_params = EncodeParams(
                quality=int(opt.get("convert_quality", 80)),
                max_width=opt.get("convert_max_width"),
                max_height=opt.get("convert_max_height"),
            )
            optimize = OptimizeSettings(
                roots=tuple(Path(r) for r in opt.get("roots", [])),
                policy=policy,
                only_if_smaller=bool(opt.get("only_if_smaller", False)),
                convert_to=opt.get("convert_to", "webp"),
                convert_from=frozenset(
                    "jpeg" if f == "jpg" else f for f in opt.get("convert_from", ["png", "jpeg"])
                ),
                convert_params=convert_params,
                max_ratio=float(opt.get("max_ratio", 0.7)),
                log_threshold=float(opt.get("log_threshold", 0.05)),
                workers=int(opt.get("workers", 1)),
            )
            if optimize.convert_to is not None and optimize.convert_to not in KNOWN_FORMATS:
                raise ConfigError(f"Unknown convert_to format: {optimize.convert_to}")
            if not 0 < optimize.max_ratio <= 1:
                raise ConfigError(f"max_ratio must be within (0, 1], got {optimize.max_ratio}")
            if optimize.workers < 1:
                raise ConfigError(f"workers must be >= 1, got {optimize.workers}")

        return RunConfig(
            project_root=Path(project_root),
            temp_suffix=str(data.get("temp_suffix", TEMP_SUFFIX)),
            remove_dirs=tuple(str(d) for d in data.get("remove_dirs", [])),
            deletion_phases=phases,
            optimize=optimize,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Invalid config: {e!r}") from e


def load_config(path: Path, project_root: Path) -> RunConfig:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must contain a JSON object")
    return config_from_dict(data, project_root)
