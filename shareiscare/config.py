"""ShareIsCare configuration: Pydantic BaseSettings persisted as YAML."""

from __future__ import annotations

import logging
import secrets
from pathlib import Path

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shareiscare.errors import ConfigIOError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yaml"

# Fields written to config.yaml; tunnel credentials stay in the environment.
PERSISTED_FIELDS = ("port", "root_dir", "title", "username", "password", "secret_key")

_HEADER = (
    "# ShareIsCare configuration\n"
    "# Note: change the default credentials for security.\n"
    "# root_dir is the directory that is shared; relative paths are resolved\n"
    "# against the directory the server is started from.\n"
    "# secret_key signs session cookies; changing it logs everyone out.\n"
)


def _generate_secret_key() -> str:
    return secrets.token_hex(32)


class Settings(BaseSettings):
    """Process-wide settings, loaded once at startup and treated as read-only."""

    # Server
    port: int = Field(default=8080, ge=1, le=65535)
    host: str = "0.0.0.0"
    root_dir: str = "."
    title: str = "ShareIsCare"
    log_level: str = "INFO"

    # Single shared credential pair
    username: str = "admin"
    password: str = "shareiscare"
    secret_key: str = Field(default_factory=_generate_secret_key)

    # Public hostname, assigned once by DNS provisioning
    hostname: str = ""

    # Cloudflare tunnel (environment only, never persisted)
    cloudflare_api_token: str = ""
    cloudflare_zone_id: str = ""
    cloudflare_account_tag: str = ""
    tunnel_domain: str = "shareiscare.com"
    tunnel_name: str = ""
    tunnel_url: str = ""  # CNAME target, e.g. <tunnel-id>.cfargotunnel.com
    cloudflared_path: str = ""
    cloudflared_version: str = "2025.4.0"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SHAREISCARE_",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()

    @property
    def root_path(self) -> Path:
        """Absolute form of ``root_dir``."""
        return Path(self.root_dir).expanduser().resolve()

    @property
    def tunnel_configured(self) -> bool:
        return bool(self.cloudflare_api_token and self.tunnel_name)


def load_config(path: str | Path = CONFIG_FILENAME) -> Settings:
    """Load settings from a YAML file, falling back to defaults if it is absent."""
    path = Path(path)
    if not path.exists():
        logger.debug("No configuration file at %s, using defaults", path)
        return Settings()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigIOError(f"Error reading configuration file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigIOError(f"Error parsing configuration file {path}: expected a mapping")

    try:
        return Settings(**data)
    except ValidationError as exc:
        raise ConfigIOError(f"Invalid configuration in {path}: {exc}") from exc


def save_config(settings: Settings, path: str | Path = CONFIG_FILENAME) -> None:
    """Write the persisted subset of ``settings`` to ``path`` with header comments."""
    data = {name: getattr(settings, name) for name in PERSISTED_FIELDS}
    if settings.hostname:
        data["hostname"] = settings.hostname

    body = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    try:
        Path(path).write_text(_HEADER + body, encoding="utf-8")
    except OSError as exc:
        raise ConfigIOError(f"Error saving configuration file {path}: {exc}") from exc


def persist_hostname(settings: Settings, hostname: str, path: str | Path = CONFIG_FILENAME) -> Settings:
    """Record a freshly provisioned hostname. Returns the updated settings."""
    updated = settings.model_copy(update={"hostname": hostname})
    save_config(updated, path)
    logger.info("Hostname %s saved to %s", hostname, path)
    return updated
