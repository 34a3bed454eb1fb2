"""Auth routes: login form, credential check, logout."""

import hmac
import logging

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import RedirectResponse

from shareiscare.api.deps import get_principal, get_settings
from shareiscare.api.templating import render
from shareiscare.config import Settings
from shareiscare.services.session import ANONYMOUS, SESSION_COOKIE, SESSION_MAX_AGE, Principal, issue

logger = logging.getLogger(__name__)
router = APIRouter()


def _credentials_match(settings: Settings, username: str, password: str) -> bool:
    user_ok = hmac.compare_digest(username.encode(), settings.username.encode())
    password_ok = hmac.compare_digest(password.encode(), settings.password.encode())
    return user_ok and password_ok


@router.get("/login")
async def login_form(
    request: Request,
    settings: Settings = Depends(get_settings),
    principal: Principal = Depends(get_principal),
):
    if principal.is_authenticated:
        return RedirectResponse("/upload", status_code=status.HTTP_303_SEE_OTHER)
    return render(request, "login.html", settings, ANONYMOUS, page_title="Log in", login_username="")


@router.post("/login")
async def login(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    settings: Settings = Depends(get_settings),
):
    """Check the shared credential pair and start a session."""
    if username and _credentials_match(settings, username, password):
        response = RedirectResponse("/upload", status_code=status.HTTP_303_SEE_OTHER)
        response.set_cookie(
            SESSION_COOKIE,
            issue(username, settings.secret_key),
            max_age=SESSION_MAX_AGE,
            path="/",
            httponly=True,
            samesite="lax",
        )
        logger.info("User %s logged in from %s", username, request.client.host if request.client else "?")
        return response

    logger.warning("Failed login for %r", username)
    return render(
        request,
        "login.html",
        settings,
        ANONYMOUS,
        page_title="Log in",
        login_username=username,
        error_message="Incorrect username or password",
    )


@router.get("/logout")
async def logout():
    response = RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(SESSION_COOKIE, path="/", httponly=True, samesite="lax")
    return response
