from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterable, List

from .results import ActionKind, ActionResult, failed
from .walker import file_size, tree_size, walk_files

logger = logging.getLogger(__name__)


def _is_relative_to(child: Path, parent: Path) -> bool:
    try:
        child.relative_to(parent)
        return True
    except ValueError:
        return False


def remove_directories(root: Path, rel_paths: Iterable[str]) -> List[ActionResult]:
    """
    Remove each listed subtree of root, no questions asked.

    Missing entries are ignored. Entries pointing outside root (or at root
    itself) are refused. A failing removal is logged and the next entry is
    still processed.
    """
    root = Path(root).resolve()
    results: List[ActionResult] = []

    for rel in rel_paths:
        target = (root / rel).resolve()
        if target == root or not _is_relative_to(target, root):
            logger.warning("Refusing to remove %s: not inside %s", rel, root)
            continue
        if not target.exists():
            continue

        size = tree_size(target) if target.is_dir() else file_size(target)
        logger.info("Removing: %s", rel)
        try:
            if target.is_dir():
                shutil.rmtree(target)
            else:
                target.unlink()
        except OSError as e:
            logger.error("Failed to remove %s: %s", rel, e)
            # Part of the tree may already be gone.
            left = tree_size(target) if target.is_dir() else file_size(target)
            results.append(
                ActionResult(
                    kind=ActionKind.FAILED,
                    path=target,
                    src_bytes=size,
                    out_bytes=left,
                    reason=str(e),
                )
            )
            continue

        results.append(ActionResult(kind=ActionKind.DELETED, path=target, src_bytes=size, out_bytes=0))

    return results


def cleanup_temp_files(root: Path, suffix: str) -> List[ActionResult]:
    """Delete temp files left behind by an interrupted run."""
    results: List[ActionResult] = []
    for p in walk_files(root):
        if not p.name.endswith(suffix):
            continue
        size = file_size(p)
        try:
            p.unlink()
        except OSError as e:
            logger.debug("Could not remove temp file %s: %s", p, e)
            results.append(failed(p, size, str(e)))
            continue
        results.append(ActionResult(kind=ActionKind.DELETED, path=p, src_bytes=size, out_bytes=0))

    if results:
        logger.info("Removed %d %s files", sum(r.removed for r in results), suffix)
    return results
