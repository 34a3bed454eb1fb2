"""cloudflared binary discovery/download and tunnel configuration files."""

from __future__ import annotations

import asyncio
import io
import json
import logging
import os
import platform
import shutil
import sys
import tarfile
import tempfile
from pathlib import Path

import httpx
import yaml

from shareiscare.config import Settings
from shareiscare.errors import SubprocessFailure, TunnelProvisioningError

logger = logging.getLogger(__name__)

RELEASE_URL = "https://github.com/cloudflare/cloudflared/releases/download/{version}/{asset}"
CACHE_DIR = Path.home() / ".cache" / "shareiscare" / "cloudflared"
CLOUDFLARED_DIR = Path.home() / ".cloudflared"

_ARCH_ALIASES = {"x86_64": "amd64", "amd64": "amd64", "aarch64": "arm64", "arm64": "arm64"}


def platform_asset(system: str | None = None, machine: str | None = None) -> tuple[str, str]:
    """Release asset and installed binary name for the running platform.

    Raises:
        SubprocessFailure: no cloudflared build exists for this platform.
    """
    system = (system or sys.platform).lower()
    arch = _ARCH_ALIASES.get((machine or platform.machine()).lower())

    if system.startswith("linux") and arch:
        return f"cloudflared-linux-{arch}", "cloudflared"
    if system == "darwin" and arch:
        return f"cloudflared-darwin-{arch}.tgz", "cloudflared"
    if system in ("win32", "windows") and arch == "amd64":
        return "cloudflared-windows-amd64.exe", "cloudflared.exe"
    raise SubprocessFailure(f"Unsupported platform for cloudflared: {system}/{machine or platform.machine()}")


def find_binary(settings: Settings) -> Path | None:
    """Configured path, then PATH, then a previously downloaded copy."""
    if settings.cloudflared_path:
        path = Path(settings.cloudflared_path).expanduser()
        if not path.is_file():
            raise SubprocessFailure(f"cloudflared not found at {path}")
        return path

    on_path = shutil.which("cloudflared")
    if on_path:
        return Path(on_path)

    _, binary_name = platform_asset()
    cached = CACHE_DIR / settings.cloudflared_version / binary_name
    return cached if cached.is_file() else None


def _extract_tgz(data: bytes, binary_name: str) -> bytes:
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
        for member in tar.getmembers():
            if member.isfile() and Path(member.name).name == binary_name:
                extracted = tar.extractfile(member)
                if extracted is not None:
                    return extracted.read()
    raise SubprocessFailure(f"{binary_name} not found in release archive")


async def download_binary(version: str, dest_dir: Path | None = None) -> Path:
    """Fetch the cloudflared release for this platform into the cache."""
    asset, binary_name = platform_asset()
    dest_dir = dest_dir or CACHE_DIR / version
    url = RELEASE_URL.format(version=version, asset=asset)

    logger.info("Downloading cloudflared from %s", url)
    try:
        async with httpx.AsyncClient(timeout=120.0, follow_redirects=True) as client:
            resp = await client.get(url)
            resp.raise_for_status()
    except httpx.HTTPError as exc:
        raise SubprocessFailure(f"cloudflared download failed: {exc}") from exc

    data = resp.content
    if asset.endswith(".tgz"):
        data = _extract_tgz(data, binary_name)

    dest_dir.mkdir(parents=True, exist_ok=True)
    path = dest_dir / binary_name
    path.write_bytes(data)
    if os.name != "nt":
        path.chmod(0o755)
    logger.info("cloudflared saved to %s (%d bytes)", path, len(data))
    return path


async def run_cloudflared(binary: Path, *args: str) -> str:
    """Run a one-shot cloudflared command and return its stdout."""
    try:
        proc = await asyncio.create_subprocess_exec(
            str(binary), *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise SubprocessFailure(f"Cannot execute {binary}: {exc}") from exc

    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        raise SubprocessFailure(
            f"cloudflared {' '.join(args)} failed ({proc.returncode}): {stderr.decode(errors='replace').strip()}"
        )
    return stdout.decode(errors="replace")


async def ensure_binary(settings: Settings) -> Path:
    """Locate (or download) cloudflared and check that it runs."""
    binary = find_binary(settings)
    if binary is None:
        binary = await download_binary(settings.cloudflared_version)
    await run_cloudflared(binary, "version")
    return binary


async def find_tunnel_id(binary: Path, tunnel_name: str) -> str:
    output = await run_cloudflared(binary, "tunnel", "list", "--name", tunnel_name, "--output", "json")
    try:
        tunnels = json.loads(output or "[]")
    except json.JSONDecodeError as exc:
        raise TunnelProvisioningError(f"Unexpected output from cloudflared tunnel list: {exc}") from exc
    if not tunnels:
        raise TunnelProvisioningError(f"No tunnel named {tunnel_name}")
    return tunnels[0]["id"]


async def ensure_credentials(
    binary: Path,
    tunnel_id: str,
    tunnel_name: str,
    account_tag: str,
    cloudflared_dir: Path = CLOUDFLARED_DIR,
) -> Path:
    """Return the tunnel credentials file, creating it from a tunnel token if missing."""
    cloudflared_dir.mkdir(parents=True, exist_ok=True)
    credentials_path = cloudflared_dir / f"{tunnel_id}.json"

    if not credentials_path.exists():
        token = (await run_cloudflared(binary, "tunnel", "token", tunnel_id)).strip()
        credentials = {
            "AccountTag": account_tag,
            "TunnelSecret": token,
            "TunnelID": tunnel_id,
            "TunnelName": tunnel_name,
        }
        credentials_path.write_text(json.dumps(credentials, indent=2), encoding="utf-8")
        if os.name != "nt":
            credentials_path.chmod(0o600)
        logger.info("Created tunnel credentials %s", credentials_path)

    try:
        json.loads(credentials_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise TunnelProvisioningError(f"Invalid credentials file {credentials_path}: {exc}") from exc
    return credentials_path


def write_tunnel_config(tunnel_name: str, credentials_file: Path, hostname: str, port: int) -> Path:
    """Write a temporary ingress config routing ``hostname`` to the local server."""
    if not 0 < port <= 65535:
        raise TunnelProvisioningError(f"Invalid port: {port}")

    config = {
        "tunnel": tunnel_name,
        "credentials-file": str(credentials_file),
        "ingress": [
            {"hostname": hostname, "service": f"http://localhost:{port}"},
            {"service": "http_status:404"},
        ],
    }
    fd, name = tempfile.mkstemp(prefix="cloudflared-config-", suffix=".yml")
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        yaml.safe_dump(config, f, sort_keys=False)
    return Path(name)
