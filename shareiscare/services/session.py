"""Session cookie codec: ``identity:timestamp:signature`` signed with HMAC-SHA256."""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"
SESSION_MAX_AGE = 24 * 3600  # seconds
MAX_CLOCK_SKEW = 60  # seconds a timestamp may lie in the future


class Role(str, Enum):
    ANONYMOUS = "anonymous"
    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True)
class Principal:
    """Who is making the request."""

    username: str | None
    role: Role

    @property
    def is_authenticated(self) -> bool:
        return self.role != Role.ANONYMOUS

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


ANONYMOUS = Principal(username=None, role=Role.ANONYMOUS)


def sign(identity: str, timestamp: str, secret_key: str) -> str:
    """HMAC-SHA256 over ``identity:timestamp`` keyed by the secret, hex encoded."""
    message = f"{identity}:{timestamp}"
    return hmac.new(secret_key.encode(), message.encode(), hashlib.sha256).hexdigest()


def issue(identity: str, secret_key: str, now: float | None = None) -> str:
    """Create a session token for ``identity``.

    ``identity`` must not contain ``:``, the token field separator.
    """
    timestamp = str(int(now if now is not None else time.time()))
    return f"{identity}:{timestamp}:{sign(identity, timestamp, secret_key)}"


def verify(
    token: str | None,
    secret_key: str,
    max_age: int = SESSION_MAX_AGE,
    now: float | None = None,
) -> str | None:
    """Return the identity carried by ``token``, or None if it is invalid."""
    if not token:
        return None

    parts = token.split(":")
    if len(parts) != 3:
        return None
    identity, timestamp, signature = parts

    try:
        issued_at = int(timestamp)
    except ValueError:
        return None

    expected = sign(identity, timestamp, secret_key)
    if not hmac.compare_digest(signature.encode(), expected.encode()):
        logger.debug("Rejected session cookie with bad signature for %r", identity)
        return None

    age = (now if now is not None else time.time()) - issued_at
    if age > max_age or age < -MAX_CLOCK_SKEW:
        return None

    return identity


def principal_for(identity: str | None, admin_username: str) -> Principal:
    """Map a verified identity onto the single-admin role model."""
    if identity is None:
        return ANONYMOUS
    if hmac.compare_digest(identity.encode(), admin_username.encode()):
        return Principal(username=identity, role=Role.ADMIN)
    return Principal(username=identity, role=Role.USER)
