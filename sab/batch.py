from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .classify import is_image
from .codec import Codec, PillowCodec
from .engine import delete_file, optimize_asset
from .policy import Decision, decide_deletion
from .prune import cleanup_temp_files, remove_directories
from .results import ActionResult
from .settings import DeletionPhase, OptimizeSettings, RunConfig
from .summary import PhaseSummary, RunSummary
from .walker import file_size, walk_files

logger = logging.getLogger(__name__)

ResultCallback = Callable[[str, ActionResult], None]


def _root_ok(root: Path) -> bool:
    if not root.is_dir():
        logger.warning("Skipping phase root %s: not a readable directory", root)
        return False
    return True


def iter_images(root: Path) -> Iterable[Path]:
    """Image files below root (by extension), in walk order."""
    for p in walk_files(root):
        if is_image(p):
            yield p


def run_deletion_phase(
    root: Path,
    max_bytes: int,
    *,
    images_only: bool = True,
    name: str = "images",
    on_result: Optional[ResultCallback] = None,
) -> tuple[List[ActionResult], PhaseSummary]:
    """Delete every file (or image) under root bigger than max_bytes."""
    root = Path(root)
    summary = PhaseSummary(name=name)
    results: List[ActionResult] = []

    if not _root_ok(root):
        return results, summary

    for p in walk_files(root):
        image = is_image(p)
        if images_only and not image:
            continue

        size = file_size(p)
        if decide_deletion(size, max_bytes, image=image, images_only=images_only) is not Decision.DELETE:
            continue

        r = delete_file(p)
        if r.removed:
            logger.info("Removing large %s: %s (%.2fMB)", "image" if image else "asset", p, size / 1024 / 1024)

        results.append(r)
        summary.add(r)
        if on_result:
            on_result(name, r)

    if summary.deleted:
        logger.info("Removed %d large files from %s, saved %.2fMB", summary.deleted, root, summary.bytes_freed / 1024 / 1024)
    return results, summary


def run_optimize_phase(
    roots: Iterable[Path],
    settings: OptimizeSettings,
    codec: Optional[Codec] = None,
    *,
    name: str = "optimize",
    progress_callback: Optional[Callable[[int, int], None]] = None,
    on_result: Optional[ResultCallback] = None,
) -> tuple[List[ActionResult], PhaseSummary]:
    """
    Re-encode (and maybe convert) every image under the given roots.

    The file list is fixed before any work starts, so files created by a
    conversion are never picked up again and no path is handed to two
    workers. Files sharing a directory and stem (a.png, a.jpg, a.webp) map
    to the same conversion target and are handled one after another by a
    single worker. Results are aggregated here, in the calling thread.
    """
    codec = codec or PillowCodec()
    summary = PhaseSummary(name=name)
    results: List[ActionResult] = []

    groups: dict[Path, List[Path]] = {}
    seen: set[Path] = set()
    for root in roots:
        root = Path(root)
        if not _root_ok(root):
            continue
        for p in iter_images(root):
            key = p.resolve()
            if key in seen:
                continue  # overlapping roots
            seen.add(key)
            groups.setdefault(key.with_suffix(""), []).append(p)

    total = len(seen)

    def work(group: List[Path]) -> List[ActionResult]:
        return [optimize_asset(p, settings, codec) for p in group]

    idx = 0
    with ThreadPoolExecutor(max_workers=max(1, settings.workers)) as executor:
        # map() yields in submission order, keeps reports stable across runs
        for group_results in executor.map(work, groups.values()):
            for r in group_results:
                idx += 1
                if progress_callback:
                    progress_callback(idx, total)
                results.append(r)
                summary.add(r)
                if on_result:
                    on_result(name, r)

    return results, summary



def _run_deletion(
    config: RunConfig,
    phase: DeletionPhase,
    on_result: Optional[ResultCallback],
) -> tuple[List[ActionResult], PhaseSummary]:
    logger.info("Removing large %s from %s (> %d bytes)", "images" if phase.images_only else "files", phase.root, phase.max_bytes)
    return run_deletion_phase(
        config.project_root / phase.root,
        phase.max_bytes,
        images_only=phase.images_only,
        name=phase.name,
        on_result=on_result,
    )


def run_all(
    config: RunConfig,
    codec: Optional[Codec] = None,
    *,
    cleanup: bool = True,
    optimize: bool = True,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    on_result: Optional[ResultCallback] = None,
) -> tuple[List[ActionResult], RunSummary]:
    """
    A full run, strictly one phase after the other:

      1. stale temp files
      2. directory removal
      3. size-threshold deletion phases   (cleanup=True)
      4. optimization                     (optimize=True)
    """
    root = Path(config.project_root)
    run = RunSummary()
    results: List[ActionResult] = []

    def collect(r: List[ActionResult], s: PhaseSummary) -> None:
        results.extend(r)
        run.add_phase(s)

    logger.info("Cleaning up temporary files...")
    temp = cleanup_temp_files(root, config.temp_suffix)
    collect(temp, PhaseSummary(name="temp").extend(temp))

    logger.info("Removing unnecessary directories...")
    dirs = remove_directories(root, config.remove_dirs)
    collect(dirs, PhaseSummary(name="directories").extend(dirs))

    if cleanup:
        for phase in config.deletion_phases:
            collect(*_run_deletion(config, phase, on_result))

    if optimize and config.optimize is not None:
        logger.info("Optimizing images...")
        collect(
            *run_optimize_phase(
                [root / r for r in config.optimize.roots],
                config.optimize,
                codec,
                progress_callback=progress_callback,
                on_result=on_result,
            )
        )

    return results, run
