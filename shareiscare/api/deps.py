"""FastAPI dependency injection: settings, session principal, access checks."""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, status

from shareiscare.config import Settings
from shareiscare.services.access import Decision, Operation, authorize
from shareiscare.services.session import SESSION_COOKIE, Principal, principal_for, verify

logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    """Settings injected by ``create_app``."""
    return request.app.state.settings


def get_principal(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> Principal:
    """Resolve the session cookie to a principal; anonymous if absent or invalid."""
    identity = verify(request.cookies.get(SESSION_COOKIE), settings.secret_key)
    return principal_for(identity, settings.username)


def _enforce(operation: Operation, principal: Principal) -> Principal:
    decision = authorize(operation, principal)
    if decision == Decision.PERMIT:
        return principal
    if decision == Decision.LOGIN_REQUIRED:
        raise HTTPException(
            status_code=status.HTTP_303_SEE_OTHER,
            detail="Login required",
            headers={"Location": "/login"},
        )
    if decision == Decision.UNAUTHORIZED:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    logger.warning("Denied %s to non-admin user %r", operation.value, principal.username)
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")


async def require_upload(principal: Principal = Depends(get_principal)) -> Principal:
    """Authenticated users only; anonymous visitors are sent to the login form."""
    return _enforce(Operation.UPLOAD, principal)


async def require_delete(principal: Principal = Depends(get_principal)) -> Principal:
    """Admin only."""
    return _enforce(Operation.DELETE, principal)
