"""Directory listing formatter: display rows and breadcrumbs."""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import Iterable

from shareiscare.config import CONFIG_FILENAME
from shareiscare.schemas.files import Breadcrumb, FileEntry

logger = logging.getLogger(__name__)

# Server control files: never listed, served, or deleted.
EXCLUDED_NAMES = frozenset({CONFIG_FILENAME, "shareiscare", "shareiscare.exe"})

KB = 1024
MB = 1024 * 1024


def format_size(size: int) -> str:
    """Human readable size using binary units, one decimal place above bytes."""
    if size < KB:
        return f"{size} B"
    if size < MB:
        return f"{size / KB:.1f} KB"
    return f"{size / MB:.1f} MB"


def is_excluded(name: str) -> bool:
    return name in EXCLUDED_NAMES


def format_entries(entries: Iterable[os.DirEntry], prefix: str, is_admin: bool) -> list[FileEntry]:
    """Turn raw directory entries into listing rows, sorted by name.

    Entries whose metadata cannot be read are left out of the listing.
    """
    rows: list[FileEntry] = []
    for entry in entries:
        if is_excluded(entry.name):
            continue
        try:
            st = entry.stat()
        except OSError as exc:
            logger.debug("Skipping unreadable entry %s: %s", entry.path, exc)
            continue

        is_dir = stat.S_ISDIR(st.st_mode)
        rows.append(
            FileEntry(
                name=entry.name,
                path=f"{prefix}/{entry.name}" if prefix else entry.name,
                size="directory" if is_dir else format_size(st.st_size),
                is_dir=is_dir,
                is_admin=is_admin,
            )
        )
    rows.sort(key=lambda row: row.name)
    return rows


def list_directory(directory: str | Path, prefix: str, is_admin: bool) -> list[FileEntry]:
    with os.scandir(directory) as it:
        return format_entries(it, prefix, is_admin)


def breadcrumbs(path: str) -> list[Breadcrumb]:
    """Home, then one crumb per path segment with its accumulated prefix."""
    crumbs = [Breadcrumb(name="Home", path="")]
    current = ""
    for part in path.split("/"):
        if not part:
            continue
        current = f"{current}/{part}" if current else part
        crumbs.append(Breadcrumb(name=part, path=current))
    return crumbs
