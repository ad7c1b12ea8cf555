from __future__ import annotations

from pathlib import Path

from .settings import DeletionPhase, EncodeParams, OptimizeSettings, Policy, RunConfig


KB = 1024

PRESETS = ("cleanup", "aggressive", "full")

# 800x800 box, fit inside, never enlarge.
_BOX = dict(max_width=800, max_height=800)

AGGRESSIVE_POLICY = Policy(
    {
        "jpeg": EncodeParams(quality=75, **_BOX),
        "webp": EncodeParams(quality=80, **_BOX),
        "png": EncodeParams(quality=80, **_BOX),
        "gif": EncodeParams(quality=80, **_BOX),
        "avif": EncodeParams(quality=80, **_BOX),
    }
)

CLEANUP_REMOVE_DIRS = (
    "src/routes/blog",
    "src/routes/changelog",
)

AGGRESSIVE_REMOVE_DIRS = (
    "static/images/temp",
    "static/images/changelog",
    "static/images/testimonials",
    "static/images/heroes/photos",
    "local-fonts",
)

CLEANUP_PHASES = (
    DeletionPhase(name="images", root=Path("static/images"), max_bytes=100 * KB),
    DeletionPhase(name="routes", root=Path("src/routes"), max_bytes=50 * KB),
    DeletionPhase(name="assets", root=Path("static/assets"), max_bytes=200 * KB, images_only=False),
)

AGGRESSIVE_OPTIMIZE = OptimizeSettings(
    roots=(Path("static/images"), Path("src/routes")),
    policy=AGGRESSIVE_POLICY,
    convert_to="webp",
    convert_params=EncodeParams(quality=80, **_BOX),
    max_ratio=0.7,
    log_threshold=0.05,
)


def apply_preset(name: str, base: RunConfig) -> RunConfig:
    """Fill base with one of the built-in site tables (project_root is kept)."""
    name = name.lower()

    if name == "cleanup":
        return base.__class__(
            **{**base.__dict__,
               "remove_dirs": CLEANUP_REMOVE_DIRS,
               "deletion_phases": CLEANUP_PHASES,
               "optimize": None}
        )

    if name == "aggressive":
        return base.__class__(
            **{**base.__dict__,
               "remove_dirs": AGGRESSIVE_REMOVE_DIRS,
               "deletion_phases": (),
               "optimize": AGGRESSIVE_OPTIMIZE}
        )

    if name == "full":
        return base.__class__(
            **{**base.__dict__,
               "remove_dirs": AGGRESSIVE_REMOVE_DIRS + CLEANUP_REMOVE_DIRS,
               "deletion_phases": CLEANUP_PHASES,
               "optimize": AGGRESSIVE_OPTIMIZE}
        )

    raise ValueError(f"Unknown preset: {name}")
