"""One-shot public exposure: self-check, DNS record, tunnel launch, readiness poll."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Awaitable, Callable

import httpx

from shareiscare.config import CONFIG_FILENAME, Settings, persist_hostname
from shareiscare.errors import ReadinessTimeout
from shareiscare.services import cloudflared
from shareiscare.services.dns_service import CloudflareDNSClient
from shareiscare.services.tunnel import CloudflaredTunnel

logger = logging.getLogger(__name__)


async def poll_until(
    probe: Callable[[], Awaitable[bool]],
    interval: float,
    timeout: float,
    what: str,
) -> None:
    """Call ``probe`` every ``interval`` seconds until it returns True.

    Raises:
        ReadinessTimeout: ``timeout`` seconds passed without success.
    """
    deadline = time.monotonic() + timeout
    while True:
        await asyncio.sleep(interval)
        if await probe():
            return
        if time.monotonic() >= deadline:
            raise ReadinessTimeout(f"{what} did not respond after {timeout:g}s")


class TunnelProvisioner:
    """Brings the running server online at ``https://<hostname>``."""

    SERVER_POLL_INTERVAL = 0.3
    SERVER_TIMEOUT = 5.0
    TUNNEL_GRACE = 5.0
    TUNNEL_POLL_INTERVAL = 1.0
    TUNNEL_TIMEOUT = 60.0

    def __init__(
        self,
        settings: Settings,
        config_path: str | Path = CONFIG_FILENAME,
        dns_client: CloudflareDNSClient | None = None,
    ):
        self.settings = settings
        self._config_path = config_path
        self._dns = dns_client or CloudflareDNSClient(
            api_token=settings.cloudflare_api_token,
            zone_id=settings.cloudflare_zone_id,
        )

    async def server_is_up(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=1.0) as client:
                await client.get(f"http://127.0.0.1:{self.settings.port}/")
            return True
        except httpx.HTTPError:
            return False

    async def wait_for_server(self) -> None:
        logger.info("Checking if the server is listening on localhost:%d...", self.settings.port)
        await poll_until(
            self.server_is_up,
            self.SERVER_POLL_INTERVAL,
            self.SERVER_TIMEOUT,
            f"Server on port {self.settings.port}",
        )
        logger.info("Server is ready. Starting tunnel...")

    async def ensure_hostname(self) -> str:
        """Reuse the saved hostname, or create a DNS record once and persist it."""
        if self.settings.hostname:
            return self.settings.hostname

        hostname = await self._dns.create_tunnel_record(
            self.settings.tunnel_domain,
            self.settings.tunnel_url,
        )
        self.settings = persist_hostname(self.settings, hostname, self._config_path)
        return hostname

    async def start_tunnel(self, hostname: str) -> CloudflaredTunnel:
        binary = await cloudflared.ensure_binary(self.settings)
        tunnel_id = await cloudflared.find_tunnel_id(binary, self.settings.tunnel_name)
        credentials = await cloudflared.ensure_credentials(
            binary,
            tunnel_id,
            self.settings.tunnel_name,
            self.settings.cloudflare_account_tag,
        )
        config_file = cloudflared.write_tunnel_config(
            self.settings.tunnel_name, credentials, hostname, self.settings.port,
        )

        tunnel = CloudflaredTunnel(binary, self.settings.tunnel_name, config_file, hostname)
        try:
            await tunnel.start()
        except BaseException:
            config_file.unlink(missing_ok=True)
            raise
        return tunnel

    async def wait_for_tunnel(self, tunnel: CloudflaredTunnel) -> None:
        await asyncio.sleep(self.TUNNEL_GRACE)
        logger.info("Checking if the tunnel is established...")
        await poll_until(
            tunnel.health_check,
            self.TUNNEL_POLL_INTERVAL,
            self.TUNNEL_TIMEOUT,
            f"Tunnel https://{tunnel.hostname}",
        )
        logger.info("Tunnel is established")

    async def run(self) -> CloudflaredTunnel:
        """Full bring-up. The caller owns the returned tunnel and must stop it."""
        await self.wait_for_server()
        hostname = await self.ensure_hostname()
        logger.info("Provisioning hostname %s", hostname)

        tunnel = await self.start_tunnel(hostname)
        try:
            await self.wait_for_tunnel(tunnel)
        except BaseException:
            await tunnel.stop()
            raise
        return tunnel
