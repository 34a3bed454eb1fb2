"""Exception taxonomy shared by the web layer, config, and tunnel bring-up."""

from __future__ import annotations


class ShareIsCareError(Exception):
    """Base class for all application errors."""


class ConfigIOError(ShareIsCareError):
    """Configuration file could not be read, parsed, validated, or written."""


class PathTraversal(ShareIsCareError):
    """Requested path resolves outside the configured root directory."""

    def __init__(self, requested: str):
        super().__init__(f"Path escapes root directory: {requested!r}")
        self.requested = requested


class NotFound(ShareIsCareError):
    """Requested path is confined but does not exist."""


class UploadPartialFailure(ShareIsCareError):
    """Some files of a multi-file upload could not be saved."""

    def __init__(self, saved: list[str], failed: list[str], message: str):
        super().__init__(message)
        self.saved = saved
        self.failed = failed
        self.message = message


class SubprocessFailure(ShareIsCareError):
    """Tunnel binary missing, failed to start, or exited unexpectedly."""


class TunnelProvisioningError(ShareIsCareError):
    """DNS record creation or tunnel configuration failed."""


class ReadinessTimeout(ShareIsCareError):
    """A startup readiness poll did not succeed within its deadline."""
