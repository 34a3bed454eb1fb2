"""Cloudflare DNS: public hostnames for the tunnel."""

from __future__ import annotations

import logging
import secrets
import string

import httpx

from shareiscare.errors import TunnelProvisioningError

logger = logging.getLogger(__name__)

CLOUDFLARE_API = "https://api.cloudflare.com/client/v4"
SUBDOMAIN_ALPHABET = string.ascii_lowercase + string.digits


def generate_subdomain(length: int = 8) -> str:
    return "".join(secrets.choice(SUBDOMAIN_ALPHABET) for _ in range(length))


class CloudflareDNSClient:
    """Minimal Cloudflare v4 API client for DNS records in one zone."""

    RECORD_TTL = 120

    def __init__(
        self,
        api_token: str,
        zone_id: str,
        base_url: str = CLOUDFLARE_API,
        timeout: float = 10.0,
    ):
        self._base_url = base_url.rstrip("/")
        self._zone_id = zone_id
        self._headers = {"Authorization": f"Bearer {api_token}"}
        self._timeout = timeout

    async def create_cname(self, name: str, target: str, proxied: bool = True) -> dict:
        """Create a CNAME record ``name -> target``."""
        record = {
            "type": "CNAME",
            "name": name,
            "content": target,
            "ttl": self.RECORD_TTL,
            "proxied": proxied,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    f"{self._base_url}/zones/{self._zone_id}/dns_records",
                    json=record,
                    headers=self._headers,
                )
        except httpx.HTTPError as exc:
            raise TunnelProvisioningError(f"Cloudflare API unreachable: {exc}") from exc

        if not resp.is_success:
            raise TunnelProvisioningError(
                f"DNS record creation failed ({resp.status_code}): {resp.text}"
            )
        return resp.json()

    async def create_tunnel_record(self, domain: str, target: str) -> str:
        """Create ``<random>.<domain>`` pointing at the tunnel. Returns the hostname."""
        hostname = f"{generate_subdomain()}.{domain}"
        await self.create_cname(hostname, target)
        logger.info("DNS record created: %s -> %s", hostname, target)
        return hostname
