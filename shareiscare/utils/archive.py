"""Streaming zip archives of a directory tree."""

from __future__ import annotations

import io
import os
import zipfile
from collections import deque
from pathlib import Path
from typing import Container, Iterator

from shareiscare.utils.paths import is_inside

CHUNK_SIZE = 64 * 1024  # 64 KB


class _ChunkSink(io.RawIOBase):
    """Write-only, non-seekable sink that hands written bytes back out in order."""

    def __init__(self) -> None:
        self._chunks: deque[bytes] = deque()

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        if data:
            self._chunks.append(bytes(data))
        return len(data)

    def drain(self) -> Iterator[bytes]:
        while self._chunks:
            yield self._chunks.popleft()


def iter_archive_members(
    directory: str | Path,
    exclude: Container[str] = (),
) -> Iterator[tuple[Path, str]]:
    """Yield ``(file, arcname)`` for every regular file below ``directory``.

    Directories are not emitted (zip structure is implied by the entry paths).
    Symlinks that lead outside ``directory`` and files whose name is in
    ``exclude`` are skipped.
    """
    directory = Path(directory)
    for current, dirnames, filenames in os.walk(directory):
        dirnames.sort()
        for name in sorted(filenames):
            if name in exclude:
                continue
            path = Path(current) / name
            if not path.is_file() or not is_inside(directory, path):
                continue
            yield path, path.relative_to(directory).as_posix()


def iter_zip(directory: str | Path, exclude: Container[str] = ()) -> Iterator[bytes]:
    """Build a deflated zip of ``directory`` on the fly, yielding it in chunks."""
    sink = _ChunkSink()
    with zipfile.ZipFile(sink, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for path, arcname in iter_archive_members(directory, exclude):
            info = zipfile.ZipInfo.from_file(path, arcname)
            info.compress_type = zipfile.ZIP_DEFLATED
            with path.open("rb") as src, zf.open(info, "w") as dst:
                while chunk := src.read(CHUNK_SIZE):
                    dst.write(chunk)
                    yield from sink.drain()
            yield from sink.drain()
    yield from sink.drain()
