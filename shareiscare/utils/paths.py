"""Path confinement: maps user-supplied relative paths under the shared root."""

import os
from pathlib import Path

from shareiscare.errors import PathTraversal

_SEPARATORS = os.sep + (os.altsep or "")


def _is_within(base: str, candidate: str) -> bool:
    try:
        return os.path.commonpath([base, candidate]) == base
    except ValueError:  # different drives on Windows
        return False


def resolve(root_dir: str | Path, requested: str) -> Path:
    """
    Join ``requested`` onto ``root_dir`` and confine the result to the root.

    The check is lexical first (``..`` segments after normalisation), then
    repeated on the symlink-resolved form so a link inside the root cannot
    point the request outside of it.

    Raises:
        PathTraversal: the request escapes the root directory.
    """
    if "\x00" in requested:
        raise PathTraversal(requested)

    root = os.path.abspath(root_dir)
    # filesystem join, not concatenation; a leading separator stays under root
    joined = os.path.abspath(os.path.join(root, requested.lstrip(_SEPARATORS)))

    try:
        rel = os.path.relpath(joined, root)
    except ValueError:
        raise PathTraversal(requested)
    if rel == os.pardir or rel.startswith(os.pardir + os.sep) or os.path.isabs(rel):
        raise PathTraversal(requested)

    if not _is_within(os.path.realpath(root), os.path.realpath(joined)):
        raise PathTraversal(requested)

    return Path(joined)


def relative_to_root(root_dir: str | Path, path: str | Path) -> str:
    """POSIX-style path of ``path`` relative to the root ("" for the root itself)."""
    rel = Path(os.path.abspath(path)).relative_to(os.path.abspath(root_dir)).as_posix()
    return "" if rel == "." else rel


def is_inside(root_dir: str | Path, path: str | Path) -> bool:
    """True if the real (symlink-resolved) location of ``path`` is under ``root_dir``."""
    return _is_within(os.path.realpath(root_dir), os.path.realpath(path))
