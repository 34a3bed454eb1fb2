"""Test fixtures: a populated shared directory and FastAPI test clients."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from shareiscare.config import Settings
from shareiscare.main import create_app
from shareiscare.services.session import SESSION_COOKIE, issue

SECRET = "test-secret-key"


@pytest.fixture
def root_dir(tmp_path):
    """Shared directory with a few files, a subdirectory and a control file."""
    root = tmp_path / "share"
    root.mkdir()
    (root / "hello.txt").write_text("hello world\n")
    (root / "photo.png").write_bytes(b"\x89PNG\r\n\x1a\n" + b"\x00" * 32)
    (root / "data.bin").write_bytes(b"\x00\x01\x02")
    (root / "config.yaml").write_text("password: secret\n")
    docs = root / "docs"
    docs.mkdir()
    (docs / "readme.md").write_text("# Docs\n")
    return root


@pytest.fixture
def settings(root_dir):
    return Settings(
        root_dir=str(root_dir),
        username="admin",
        password="hunter2",
        secret_key=SECRET,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


def session_cookies(identity: str) -> dict:
    return {SESSION_COOKIE: issue(identity, SECRET)}


@pytest_asyncio.fixture
async def client(app):
    """Anonymous client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def admin_client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url="http://test", cookies=session_cookies("admin")
    ) as c:
        yield c


@pytest_asyncio.fixture
async def user_client(app):
    """Authenticated, but not the configured admin."""
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url="http://test", cookies=session_cookies("guest")
    ) as c:
        yield c
