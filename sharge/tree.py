"""
Recursive directory listing for the file browser.

Produces a snapshot of the tree under a directory: directories first,
then files, each group ordered by name. Children that vanish or cannot be
stat'd mid-scan are skipped so one bad entry does not sink the listing.
"""

import logging
import os
import stat
from datetime import datetime, timezone
from typing import List, Optional, Set, Tuple

from pydantic import BaseModel

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 64


class Entry(BaseModel):
    """One node of the file tree"""
    path: str
    name: str
    size: str
    modified: datetime
    is_dir: bool
    children: Optional[List["Entry"]] = None


def format_size(size: int) -> str:
    """Human readable size: integer bytes, one decimal above that"""
    if size < 1024:
        return f"{size} B"
    if size < 1024 ** 2:
        return f"{size / 1024:.1f} KB"
    if size < 1024 ** 3:
        return f"{size / 1024 ** 2:.1f} MB"
    return f"{size / 1024 ** 3:.1f} GB"


def list_tree(
    root: str,
    directory: Optional[str] = None,
    max_depth: int = DEFAULT_MAX_DEPTH
) -> List[Entry]:
    """
    List a directory recursively.

    Args:
        root: Canonical absolute root; entry paths are relative to it
        directory: Absolute directory to list, defaults to root
        max_depth: Levels below ``directory`` that are expanded

    Returns:
        Ordered entries of ``directory``

    Raises:
        OSError: If ``directory`` itself cannot be read
    """
    directory = directory or root
    top = os.stat(directory)
    ancestors = {(top.st_dev, top.st_ino)}
    return _scan(root, directory, ancestors, 0, max_depth)


def _scan(
    root: str,
    directory: str,
    ancestors: Set[Tuple[int, int]],
    depth: int,
    max_depth: int
) -> List[Entry]:
    prefix = os.path.relpath(directory, root).replace(os.sep, "/")
    prefix = "" if prefix == "." else prefix + "/"

    entries = []
    with os.scandir(directory) as it:
        for child in it:
            try:
                st = child.stat()
            except OSError as e:
                logger.debug(f"Skipping {child.path}: {e}")
                continue

            is_dir = stat.S_ISDIR(st.st_mode)
            entry = Entry(
                path=prefix + child.name,
                name=child.name,
                size="-" if is_dir else format_size(st.st_size),
                modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
                is_dir=is_dir,
            )

            if is_dir:
                entry.children = _scan_child(root, child.path, st, ancestors, depth + 1, max_depth)

            entries.append(entry)

    entries.sort(key=lambda e: (not e.is_dir, e.name))
    return entries


def _scan_child(
    root: str,
    path: str,
    st: os.stat_result,
    ancestors: Set[Tuple[int, int]],
    depth: int,
    max_depth: int
) -> List[Entry]:
    identity = (st.st_dev, st.st_ino)
    if identity in ancestors:
        logger.warning(f"Directory cycle at {path}, not descending")
        return []
    if depth > max_depth:
        logger.warning(f"Maximum depth {max_depth} reached at {path}, not descending")
        return []

    try:
        return _scan(root, path, ancestors | {identity}, depth, max_depth)
    except OSError as e:
        logger.debug(f"Cannot read {path}: {e}")
        return []
