"""File listing schemas."""

from pydantic import BaseModel


class FileEntry(BaseModel):
    """One row of a directory listing."""
    name: str
    path: str  # relative to root, used in links
    size: str  # human readable, or "directory"
    is_dir: bool = False
    is_admin: bool = False  # render delete controls


class Breadcrumb(BaseModel):
    name: str
    path: str
