"""Jinja2 templates and the shared page layout context."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi import Request
from fastapi.templating import Jinja2Templates

from shareiscare import __version__
from shareiscare.config import Settings
from shareiscare.services.session import Principal

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def render(
    request: Request,
    name: str,
    settings: Settings,
    principal: Principal,
    page_title: str | None = None,
    status_code: int = 200,
    **context: Any,
):
    """Render ``name`` inside the layout with title and login state filled in."""
    context.update(
        app_title=settings.title,
        page_title=f"{settings.title} - {page_title}" if page_title else settings.title,
        is_logged_in=principal.is_authenticated,
        username=principal.username or "",
        version=__version__,
    )
    return templates.TemplateResponse(request, name, context, status_code=status_code)
