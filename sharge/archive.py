"""
Download preparation and on-the-fly ZIP streaming.

A download request names one or more root-relative paths. Every path is
validated before a single byte is produced; one path is served as-is,
several are packed into a ZIP that is emitted while the files are read.
"""

import logging
import os
import stat
import zipfile
from dataclasses import dataclass
from typing import Iterator, List

from sharge.errors import InvalidPathError, NotFoundError
from sharge.path_guard import resolve, to_relative

logger = logging.getLogger(__name__)

ARCHIVE_NAME = "sharge.zip"
DEFAULT_CHUNK_SIZE = 1024 * 1024  # 1MB


@dataclass
class DownloadTarget:
    """A validated file ready to be sent"""
    path: str      # absolute path on disk
    name: str      # root-relative name, used as the archive entry name
    size: int

    @property
    def filename(self) -> str:
        return os.path.basename(self.path)


def prepare_download(root: str, paths: List[str]) -> List[DownloadTarget]:
    """
    Validate every requested path up front.

    Raises:
        InvalidPathError: If any path escapes root or none was given
        NotFoundError: If any path is missing or is a directory
    """
    if not paths:
        raise InvalidPathError("missing file")

    targets = []
    for relative in paths:
        absolute = resolve(root, relative)
        try:
            st = os.stat(absolute)
        except OSError:
            raise NotFoundError(f"file not found: {relative}")
        if stat.S_ISDIR(st.st_mode):
            raise NotFoundError(f"not a file: {relative}")
        targets.append(DownloadTarget(
            path=absolute,
            name=to_relative(root, absolute),
            size=st.st_size
        ))
    return targets


class _ArchiveSink:
    """
    Write-only, non-seekable buffer for ZipFile.

    ZipFile detects the missing ``tell`` and switches to data descriptors,
    so entries can be written without seeking back. Whatever has been
    written so far is collected with ``drain``.
    """

    def __init__(self):
        self._chunks: List[bytes] = []

    def write(self, data) -> int:
        self._chunks.append(bytes(data))
        return len(data)

    def flush(self):
        pass

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


def stream_archive(
    targets: List[DownloadTarget],
    chunk_size: int = DEFAULT_CHUNK_SIZE
) -> Iterator[bytes]:
    """
    Yield a ZIP holding ``targets`` in order, entry names preserved.

    Output is produced incrementally; a consumer that stops iterating
    aborts the archive.
    """
    sink = _ArchiveSink()
    logger.info(f"Streaming archive of {len(targets)} files")

    with zipfile.ZipFile(sink, mode='w', compression=zipfile.ZIP_DEFLATED) as zf:
        for target in targets:
            zinfo = zipfile.ZipInfo.from_file(target.path, arcname=target.name, strict_timestamps=False)
            zinfo.compress_type = zipfile.ZIP_DEFLATED
            force_zip64 = target.size >= zipfile.ZIP64_LIMIT

            with open(target.path, 'rb') as src, zf.open(zinfo, 'w', force_zip64=force_zip64) as dst:
                while True:
                    chunk = src.read(chunk_size)
                    if not chunk:
                        break
                    dst.write(chunk)
                    data = sink.drain()
                    if data:
                        yield data

            data = sink.drain()
            if data:
                yield data

    # Central directory
    data = sink.drain()
    if data:
        yield data
