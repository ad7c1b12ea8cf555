from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)


def walk_files(root: Path) -> Iterator[Path]:
    """
    Yield every non-directory entry below root.

    - Depth-first, entries in name order, so a stable tree always yields the
      same sequence.
    - Uses an explicit stack, deep trees do not grow the Python stack.
    - Directories that cannot be listed (permission denied, vanished while
      walking, root missing) are skipped; the walk carries on.
    - Directory symlinks are not followed.

    The generator is one-shot: call walk_files() again to re-walk.
    """
    stack = [Path(root)]

    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.debug("Skipping unreadable directory %s: %s", current, e)
            continue

        subdirs: list[Path] = []
        for entry in entries:
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                # Vanished between listing and stat.
                continue

            if is_dir:
                subdirs.append(Path(entry.path))
            else:
                yield Path(entry.path)

        # Reversed so the first subdirectory is popped (and walked) first.
        stack.extend(reversed(subdirs))


def file_size(p: Path) -> int:
    """Size in bytes, 0 if the file is gone or cannot be stat'ed."""
    try:
        return p.stat().st_size
    except OSError:
        return 0


def tree_size(root: Path) -> int:
    return sum(file_size(p) for p in walk_files(root))
