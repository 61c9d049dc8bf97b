"""
Upload storage with collision-free naming.

An upload never replaces an existing file: if ``report.txt`` is taken
the file lands at ``report (1).txt``, then ``report (2).txt`` and so on.
Destinations are opened with exclusive create, so two concurrent uploads
cannot both claim the same name.
"""

import itertools
import logging
import os
from typing import AsyncIterator, Iterator, Optional, Tuple

import aiofiles

from sharge.errors import InvalidPathError, NotFoundError
from sharge.path_guard import resolve, sanitize_name

logger = logging.getLogger(__name__)


def split_extension(name: str) -> Tuple[str, str]:
    """Split at the last dot; a leading dot does not start an extension"""
    dot = name.rfind(".")
    if dot > 0:
        return name[:dot], name[dot:]
    return name, ""


def candidate_names(name: str) -> Iterator[str]:
    """Yield ``name``, then ``base (1)ext``, ``base (2)ext``, ... without end"""
    yield name
    base, ext = split_extension(name)
    for i in itertools.count(1):
        yield f"{base} ({i}){ext}"


async def _open_exclusive(path: str):
    """Create and open path for writing, or None if it already exists"""
    try:
        return await aiofiles.open(path, 'xb')
    except FileExistsError:
        return None


async def store(
    root: str,
    directory: str,
    filename: str,
    chunks: AsyncIterator[bytes]
) -> str:
    """
    Write an uploaded stream under a collision-free name.

    Args:
        root: Canonical absolute root directory
        directory: Destination directory relative to root ("" for root)
        filename: Client supplied filename
        chunks: Upload content; size limits are the caller's concern

    Returns:
        Absolute path the content was written to

    Raises:
        InvalidPathError: Filename is unusable or the target escapes root
        NotFoundError: Destination directory does not exist
        OSError: Write failure; a partially written file is left in place
    """
    name = sanitize_name(filename)
    if not name:
        raise InvalidPathError(f"invalid filename: {filename!r}")

    dest = resolve(root, os.path.join(directory, name))
    parent = os.path.dirname(dest)
    if not os.path.isdir(parent):
        raise NotFoundError(f"directory not found: {directory}")

    out = None
    target: Optional[str] = None
    for candidate in candidate_names(name):
        target = resolve(root, os.path.join(directory, candidate))
        out = await _open_exclusive(target)
        if out is not None:
            break

    try:
        async for chunk in chunks:
            await out.write(chunk)
    finally:
        await out.close()

    if target != dest:
        logger.info(f"{name} already exists, stored as {os.path.basename(target)}")
    return target
