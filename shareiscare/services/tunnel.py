"""cloudflared tunnel process: start, health-check, stop."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import httpx

from shareiscare.errors import SubprocessFailure

logger = logging.getLogger(__name__)


class CloudflaredTunnel:
    """Runs ``cloudflared tunnel --config <file> run <name>`` as a child process."""

    PROBE_TIMEOUT = 5  # seconds per health probe
    TERMINATE_TIMEOUT = 10  # seconds before SIGKILL

    def __init__(self, binary: Path, tunnel_name: str, config_file: Path, hostname: str):
        self.binary = binary
        self.tunnel_name = tunnel_name
        self.config_file = config_file
        self.hostname = hostname
        self._process: asyncio.subprocess.Process | None = None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def start(self) -> None:
        if self._process is not None:
            return
        try:
            self._process = await asyncio.create_subprocess_exec(
                str(self.binary),
                "tunnel", "--config", str(self.config_file), "run", self.tunnel_name,
            )
        except OSError as exc:
            raise SubprocessFailure(f"Error starting cloudflared: {exc}") from exc
        logger.info("cloudflared started (pid %s) for %s", self._process.pid, self.hostname)

    async def health_check(self) -> bool:
        """True once the public hostname answers over HTTPS."""
        if not self.running:
            raise SubprocessFailure("cloudflared closed unexpectedly")
        try:
            async with httpx.AsyncClient(timeout=self.PROBE_TIMEOUT) as client:
                await client.get(f"https://{self.hostname}")
            return True
        except httpx.HTTPError:
            return False

    async def wait(self) -> int:
        """Wait for the process to exit and return its exit code."""
        if self._process is None:
            raise SubprocessFailure("cloudflared was never started")
        return await self._process.wait()

    async def stop(self) -> None:
        """Terminate the process (kill after a timeout) and remove the temp config."""
        proc = self._process
        if proc is not None and proc.returncode is None:
            logger.info("Stopping cloudflared (pid %s)", proc.pid)
            try:
                proc.terminate()
                await asyncio.wait_for(proc.wait(), timeout=self.TERMINATE_TIMEOUT)
            except ProcessLookupError:
                pass
            except asyncio.TimeoutError:
                logger.warning("cloudflared did not exit, killing it")
                proc.kill()
                await proc.wait()
        self.config_file.unlink(missing_ok=True)
