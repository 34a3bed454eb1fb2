"""File operations under the shared root: upload, delete, preview."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import shutil
from pathlib import Path
from typing import BinaryIO

from starlette.datastructures import UploadFile

from shareiscare.errors import NotFound, PathTraversal, UploadPartialFailure
from shareiscare.services.listing import is_excluded
from shareiscare.utils.paths import resolve

logger = logging.getLogger(__name__)

# Cap on each non-file form field; file parts spool to disk past 1 MiB
UPLOAD_MEMORY_THRESHOLD = 32 * 1024 * 1024
COPY_CHUNK_SIZE = 1024 * 1024
TEXT_PREVIEW_LIMIT = 1024 * 1024

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".bmp", ".ico"}
VIDEO_EXTENSIONS = {".mp4", ".webm", ".ogv", ".mov", ".m4v"}
AUDIO_EXTENSIONS = {".mp3", ".wav", ".ogg", ".oga", ".flac", ".m4a"}
TEXT_EXTENSIONS = {
    ".txt", ".md", ".log", ".csv", ".tsv", ".json", ".yaml", ".yml", ".toml",
    ".ini", ".cfg", ".xml", ".html", ".htm", ".css", ".js", ".ts", ".py",
    ".go", ".rs", ".java", ".c", ".h", ".cpp", ".sh", ".sql",
}

# mimetypes has no entry for some of these on minimal systems
_FALLBACK_TYPES = {
    ".webp": "image/webp",
    ".md": "text/markdown",
    ".yaml": "text/yaml",
    ".yml": "text/yaml",
}


def media_type_for(path: Path) -> str:
    suffix = path.suffix.lower()
    guessed, _ = mimetypes.guess_type(path.name)
    return guessed or _FALLBACK_TYPES.get(suffix, "application/octet-stream")


def preview_kind(path: Path) -> str | None:
    """Preview category by file extension, None when there is no inline preview."""
    suffix = path.suffix.lower()
    if suffix in IMAGE_EXTENSIONS:
        return "image"
    if suffix in VIDEO_EXTENSIONS:
        return "video"
    if suffix in AUDIO_EXTENSIONS:
        return "audio"
    if suffix == ".pdf":
        return "pdf"
    if suffix in TEXT_EXTENSIONS:
        return "text"
    return None


def read_text_preview(path: Path, limit: int = TEXT_PREVIEW_LIMIT) -> str:
    with path.open("rb") as f:
        data = f.read(limit)
    return data.decode("utf-8", errors="replace")


def _copy(src: BinaryIO, dest: Path) -> None:
    with dest.open("wb") as dst:
        shutil.copyfileobj(src, dst, COPY_CHUNK_SIZE)


async def save_uploads(root_dir: str | Path, directory: str, uploads: list[UploadFile]) -> list[str]:
    """Store uploads in ``directory`` (relative to the root) under their base names.

    Every file is attempted; an existing file of the same name is overwritten.

    Raises:
        PathTraversal: ``directory`` escapes the root.
        NotFound: ``directory`` is not an existing directory.
        UploadPartialFailure: at least one file could not be stored.
    """
    target = resolve(root_dir, directory)
    if not target.is_dir():
        raise NotFound(directory)

    saved: list[str] = []
    failed: list[str] = []
    last_error = ""

    for upload in uploads:
        original = upload.filename or ""
        name = Path(original).name
        try:
            if not name or is_excluded(name):
                raise ValueError(f"Invalid file name: {original!r}")
            dest = resolve(root_dir, f"{directory}/{name}" if directory else name)
            await asyncio.to_thread(_copy, upload.file, dest)
        except (ValueError, PathTraversal, OSError) as exc:
            last_error = f"Error saving file {original}: {exc}"
            logger.warning(last_error)
            failed.append(original)
            continue
        finally:
            await upload.close()

        logger.info("Uploaded %s (%s)", dest, upload.size if upload.size is not None else "?")
        saved.append(name)

    if failed:
        if saved:
            message = f"{len(saved)} files uploaded, {len(failed)} failed"
        else:
            message = last_error or "No files could be processed"
        raise UploadPartialFailure(saved, failed, message)

    return saved


def upload_message(saved: list[str]) -> str:
    if len(saved) == 1:
        return f"File uploaded successfully: {saved[0]}"
    return f"{len(saved)} files uploaded successfully"


def delete_path(path: Path) -> None:
    """Remove a file, or a directory if it is empty."""
    if path.is_dir() and not path.is_symlink():
        path.rmdir()
    else:
        path.unlink()
    logger.info("Deleted %s", path)
