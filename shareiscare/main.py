"""ShareIsCare FastAPI application factory and server runner."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI

from shareiscare import __version__
from shareiscare.config import CONFIG_FILENAME, Settings
from shareiscare.errors import ShareIsCareError, SubprocessFailure
from shareiscare.services.provisioning import TunnelProvisioner

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for noisy in ("httpx", "httpcore", "multipart", "python_multipart"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@asynccontextmanager
async def _lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    settings: Settings = app.state.settings
    root = settings.root_path
    if not root.is_dir():
        logger.error("Shared directory %s does not exist", root)
    logger.info(
        "ShareIsCare v%s started at http://localhost:%d sharing %s",
        __version__, settings.port, root,
    )
    try:
        yield
    finally:
        logger.info("ShareIsCare shutting down")


def create_app(settings: Settings) -> FastAPI:
    """Application factory. ``settings`` is injected into every handler via ``app.state``."""
    from shareiscare.api.routes import api_router

    app = FastAPI(
        title=settings.title,
        version=__version__,
        lifespan=_lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.settings = settings
    app.include_router(api_router)
    return app


async def _stop_server(server: uvicorn.Server, serve_task: asyncio.Task) -> None:
    server.should_exit = True
    await serve_task


async def run_server(settings: Settings, config_path: str | Path = CONFIG_FILENAME) -> int:
    """Serve until interrupted; expose publicly through the tunnel when configured.

    Returns the process exit code.
    """
    app = create_app(settings)
    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
        )
    )
    serve_task = asyncio.create_task(server.serve())

    if not settings.tunnel_configured:
        logger.warning(
            "Tunnel not configured (SHAREISCARE_CLOUDFLARE_API_TOKEN / SHAREISCARE_TUNNEL_NAME), "
            "serving on the local network only"
        )
        await serve_task
        return 0

    provisioner = TunnelProvisioner(settings, config_path)
    provision_task = asyncio.create_task(provisioner.run())
    await asyncio.wait({serve_task, provision_task}, return_when=asyncio.FIRST_COMPLETED)

    if not provision_task.done():
        # server stopped (e.g. Ctrl+C) while the tunnel was still coming up
        provision_task.cancel()
        try:
            tunnel = await provision_task
        except asyncio.CancelledError:
            return 0
        except ShareIsCareError as exc:
            logger.error("Tunnel provisioning failed: %s", exc)
            return 1
        await tunnel.stop()
        return 0

    try:
        tunnel = provision_task.result()
    except ShareIsCareError as exc:
        logger.error("Tunnel provisioning failed: %s", exc)
        await _stop_server(server, serve_task)
        return 1

    app.state.settings = provisioner.settings
    logger.info("You can access the server at https://%s", tunnel.hostname)

    tunnel_task = asyncio.create_task(tunnel.wait())
    try:
        await asyncio.wait({serve_task, tunnel_task}, return_when=asyncio.FIRST_COMPLETED)
        if tunnel_task.done():
            raise SubprocessFailure(f"cloudflared exited unexpectedly (code {tunnel_task.result()})")
        return 0
    except SubprocessFailure as exc:
        logger.error("%s", exc)
        return 1
    finally:
        tunnel_task.cancel()
        await tunnel.stop()
        if not serve_task.done():
            await _stop_server(server, serve_task)
