"""File type detection for the inline viewer"""

from enum import Enum

from sharge.errors import UnclassifiableFileError


class FileKind(Enum):
    """How a file is delivered by the viewer"""
    VIDEO = "video"  # seekable range streaming
    AUDIO = "audio"  # seekable range streaming
    TEXT = "text"  # raw passthrough
    MARKDOWN = "markdown"  # rendered page


VIDEO_EXTENSIONS = {"mp4", "webm"}
AUDIO_EXTENSIONS = {"mp3"}
MARKDOWN_EXTENSIONS = {"md"}


def classify(path: str) -> FileKind:
    """
    Classify a path by the text after its last dot.

    Matching is case sensitive; unknown extensions are treated as text.

    Raises:
        UnclassifiableFileError: If the path contains no dot at all
    """
    dot = path.rfind(".")
    if dot == -1:
        raise UnclassifiableFileError(f"can't determine file type: {path}")

    ext = path[dot + 1:]
    if ext in VIDEO_EXTENSIONS:
        return FileKind.VIDEO
    if ext in AUDIO_EXTENSIONS:
        return FileKind.AUDIO
    if ext in MARKDOWN_EXTENSIONS:
        return FileKind.MARKDOWN
    return FileKind.TEXT
