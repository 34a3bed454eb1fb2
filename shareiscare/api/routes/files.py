"""File routes: listing, browsing, download, preview, upload, delete."""

from __future__ import annotations

import logging
import posixpath
from pathlib import Path
from urllib.parse import quote, urlencode

from fastapi import APIRouter, Depends, Form, HTTPException, Request, status
from fastapi.responses import FileResponse, PlainTextResponse, RedirectResponse, StreamingResponse
from starlette.datastructures import UploadFile

from shareiscare.api.deps import get_principal, get_settings, require_delete, require_upload
from shareiscare.api.templating import render
from shareiscare.config import Settings
from shareiscare.errors import NotFound, PathTraversal, UploadPartialFailure
from shareiscare.services.listing import EXCLUDED_NAMES, breadcrumbs, is_excluded, list_directory
from shareiscare.services.session import Principal
from shareiscare.services.storage import (
    UPLOAD_MEMORY_THRESHOLD,
    delete_path,
    media_type_for,
    preview_kind,
    read_text_preview,
    save_uploads,
    upload_message,
)
from shareiscare.utils.archive import iter_zip
from shareiscare.utils.paths import relative_to_root, resolve

logger = logging.getLogger(__name__)
router = APIRouter()


def _confine(settings: Settings, filename: str) -> Path:
    """Resolve ``filename`` under the root: 403 on traversal, 404 if absent."""
    try:
        path = resolve(settings.root_path, filename)
    except PathTraversal:
        logger.warning("Blocked path traversal attempt: %r", filename)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    if is_excluded(path.name) or not path.exists():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return path


def _see_other(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)


def _browse_url(rel: str) -> str:
    return f"/browse/{quote(rel)}" if rel else "/"


def _attachment(filename: str) -> str:
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


def _render_listing(
    request: Request,
    settings: Settings,
    principal: Principal,
    directory: Path,
    rel: str,
):
    try:
        files = list_directory(directory, rel, principal.is_admin)
    except OSError as exc:
        logger.error("Cannot list %s: %s", directory, exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Cannot read directory")

    return render(
        request,
        "index.html",
        settings,
        principal,
        page_title="Browse" if rel else None,
        directory=rel,
        files=files,
        breadcrumbs=breadcrumbs(rel),
    )


@router.get("/")
async def index(
    request: Request,
    settings: Settings = Depends(get_settings),
    principal: Principal = Depends(get_principal),
):
    """Listing of the shared root."""
    return _render_listing(request, settings, principal, settings.root_path, "")


@router.get("/browse/{path:path}")
async def browse(
    path: str,
    request: Request,
    settings: Settings = Depends(get_settings),
    principal: Principal = Depends(get_principal),
):
    """Subdirectory listing; files are handed over to the download route."""
    if not path.strip("/"):
        return _see_other("/")

    target = _confine(settings, path)
    rel = relative_to_root(settings.root_path, target)
    if not target.is_dir():
        return _see_other("/download?" + urlencode({"filename": rel}))
    return _render_listing(request, settings, principal, target, rel)


@router.get("/download")
async def download(filename: str = "", settings: Settings = Depends(get_settings)):
    """Send a file as an attachment, or a directory as a zip archive."""
    if not filename:
        return _see_other("/")

    target = _confine(settings, filename)
    if target.is_dir():
        name = target.name or "files"
        logger.info("Streaming zip archive of %s", target)
        return StreamingResponse(
            iter_zip(target, exclude=EXCLUDED_NAMES),
            media_type="application/zip",
            headers={"Content-Disposition": _attachment(f"{name}.zip")},
        )

    return FileResponse(target, media_type="application/octet-stream", filename=target.name)


@router.get("/preview")
async def preview(filename: str = "", settings: Settings = Depends(get_settings)):
    """Inline rendering by file type; unknown types fall back to a plain download."""
    if not filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Filename is required")

    target = _confine(settings, filename)
    if target.is_dir():
        return _see_other(_browse_url(relative_to_root(settings.root_path, target)))

    kind = preview_kind(target)
    if kind == "text":
        return PlainTextResponse(read_text_preview(target))
    if kind is not None:
        return FileResponse(
            target,
            media_type=media_type_for(target),
            filename=target.name,
            content_disposition_type="inline",
        )
    return FileResponse(target, media_type="application/octet-stream", filename=target.name)


@router.get("/upload")
async def upload_form(
    request: Request,
    settings: Settings = Depends(get_settings),
    principal: Principal = Depends(require_upload),
):
    return render(request, "upload.html", settings, principal, page_title="Upload files", directory="")


@router.post("/upload")
async def upload_submit(
    request: Request,
    settings: Settings = Depends(get_settings),
    principal: Principal = Depends(require_upload),
):
    """Store the multipart ``files`` field (multiple) in the root or ``directory``."""
    form = await request.form(max_part_size=UPLOAD_MEMORY_THRESHOLD)
    uploads = [
        item for item in form.getlist("files")
        if isinstance(item, UploadFile) and item.filename
    ]
    directory = str(form.get("directory") or "").strip().strip("/")

    def _page(message: str, success: bool, status_code: int = status.HTTP_200_OK):
        return render(
            request,
            "upload.html",
            settings,
            principal,
            page_title="Upload files",
            status_code=status_code,
            directory=directory,
            message=message,
            success=success,
        )

    if not uploads:
        return _page("No files have been selected", success=False, status_code=status.HTTP_400_BAD_REQUEST)

    try:
        saved = await save_uploads(settings.root_path, directory, uploads)
    except PathTraversal:
        logger.warning("Blocked upload outside root: %r", directory)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    except NotFound:
        return _page(f"Destination folder not found: {directory}", success=False,
                     status_code=status.HTTP_404_NOT_FOUND)
    except UploadPartialFailure as exc:
        return _page(
            exc.message,
            success=bool(exc.saved),
            status_code=status.HTTP_200_OK if exc.saved else status.HTTP_400_BAD_REQUEST,
        )

    logger.info("User %s uploaded %d file(s)", principal.username, len(saved))
    return _page(upload_message(saved), success=True)


@router.post("/delete")
async def delete(
    filename: str = Form(""),
    settings: Settings = Depends(get_settings),
    principal: Principal = Depends(require_delete),
):
    """Remove a file (or empty directory) and return to its parent listing."""
    if not filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Filename is required")

    target = _confine(settings, filename)
    rel = relative_to_root(settings.root_path, target)
    if not rel:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot delete the shared root")

    try:
        delete_path(target)
    except OSError as exc:
        logger.error("Error deleting %s: %s", target, exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error deleting file")

    logger.info("Admin %s deleted %s", principal.username, rel)
    return _see_other(_browse_url(posixpath.dirname(rel)))
