"""
Path containment for everything reachable over HTTP.

Every user-supplied path is joined onto the root and must land strictly
inside it before any filesystem call is made.
"""

import os

from sharge.errors import InvalidPathError


def resolve(root: str, relative: str) -> str:
    """
    Resolve a user-supplied relative path against the root.

    Args:
        root: Canonical absolute root directory
        relative: Untrusted path relative to root

    Returns:
        Absolute path strictly inside root

    Raises:
        InvalidPathError: If the path cannot be resolved or escapes root
    """
    if "\x00" in relative:
        raise InvalidPathError("invalid path")

    try:
        # "/docs/a.txt" names root/docs/a.txt, not an absolute path
        absolute = os.path.abspath(os.path.join(root, relative.lstrip("/" + os.sep)))
    except (TypeError, ValueError) as e:
        raise InvalidPathError("invalid path") from e

    # The separator suffix keeps "/srv/data-old" from matching root "/srv/data"
    prefix = root.rstrip(os.sep) + os.sep
    if not absolute.startswith(prefix):
        raise InvalidPathError("invalid path")

    return absolute


def to_relative(root: str, absolute: str) -> str:
    """Root-relative form of an absolute path, always with forward slashes"""
    return os.path.relpath(absolute, root).replace(os.sep, "/")


def sanitize_name(name: str) -> str:
    """
    Reduce an uploaded filename to a safe base name.

    Returns an empty string when nothing usable is left; callers must
    treat that as a rejection.
    """
    name = name.strip().replace("\\", "/")
    if ".." in name.split("/"):
        return ""

    name = os.path.basename(name)
    name = name.rstrip(". ")
    if name in ("", ".", ".."):
        return ""
    return name
