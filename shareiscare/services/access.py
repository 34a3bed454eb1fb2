"""Access policy: which principal may perform which file operation."""

from __future__ import annotations

from enum import Enum

from shareiscare.services.session import Principal, Role


class Operation(str, Enum):
    READ = "read"  # list, browse, preview, download
    UPLOAD = "upload"
    DELETE = "delete"


class Decision(str, Enum):
    PERMIT = "permit"
    LOGIN_REQUIRED = "login_required"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"


POLICY: dict[Operation, dict[Role, Decision]] = {
    Operation.READ: {
        Role.ANONYMOUS: Decision.PERMIT,
        Role.USER: Decision.PERMIT,
        Role.ADMIN: Decision.PERMIT,
    },
    Operation.UPLOAD: {
        Role.ANONYMOUS: Decision.LOGIN_REQUIRED,
        Role.USER: Decision.PERMIT,
        Role.ADMIN: Decision.PERMIT,
    },
    Operation.DELETE: {
        Role.ANONYMOUS: Decision.UNAUTHORIZED,
        Role.USER: Decision.FORBIDDEN,
        Role.ADMIN: Decision.PERMIT,
    },
}


def authorize(operation: Operation, principal: Principal) -> Decision:
    """Look up the decision for ``principal`` performing ``operation``."""
    return POLICY[operation][principal.role]
