"""Tests for cloudflared discovery, commands and tunnel config files."""

import io
import json
import tarfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yaml

from shareiscare.config import Settings
from shareiscare.errors import SubprocessFailure, TunnelProvisioningError
from shareiscare.services import cloudflared


class TestPlatformAsset:
    @pytest.mark.parametrize(
        "system, machine, expected",
        [
            ("linux", "x86_64", ("cloudflared-linux-amd64", "cloudflared")),
            ("linux", "aarch64", ("cloudflared-linux-arm64", "cloudflared")),
            ("darwin", "arm64", ("cloudflared-darwin-arm64.tgz", "cloudflared")),
            ("darwin", "x86_64", ("cloudflared-darwin-amd64.tgz", "cloudflared")),
            ("win32", "AMD64", ("cloudflared-windows-amd64.exe", "cloudflared.exe")),
        ],
    )
    def test_supported(self, system, machine, expected):
        assert cloudflared.platform_asset(system, machine) == expected

    @pytest.mark.parametrize("system, machine", [("linux", "mips"), ("win32", "arm64"), ("sunos5", "x86_64")])
    def test_unsupported(self, system, machine):
        with pytest.raises(SubprocessFailure):
            cloudflared.platform_asset(system, machine)


class TestFindBinary:
    def test_configured_path(self, tmp_path):
        binary = tmp_path / "cloudflared"
        binary.write_text("")
        assert cloudflared.find_binary(Settings(cloudflared_path=str(binary))) == binary

    def test_configured_path_missing(self, tmp_path):
        with pytest.raises(SubprocessFailure):
            cloudflared.find_binary(Settings(cloudflared_path=str(tmp_path / "nope")))

    def test_on_path(self):
        with patch("shareiscare.services.cloudflared.shutil.which", return_value="/usr/bin/cloudflared"):
            assert cloudflared.find_binary(Settings()) == Path("/usr/bin/cloudflared")

    def test_cached_copy(self, tmp_path, monkeypatch):
        monkeypatch.setattr(cloudflared, "CACHE_DIR", tmp_path)
        monkeypatch.setattr(cloudflared, "platform_asset", lambda: ("asset", "cloudflared"))
        cached = tmp_path / "2025.4.0" / "cloudflared"
        cached.parent.mkdir()
        cached.write_text("")
        with patch("shareiscare.services.cloudflared.shutil.which", return_value=None):
            assert cloudflared.find_binary(Settings()) == cached

    def test_nothing_found(self, tmp_path, monkeypatch):
        monkeypatch.setattr(cloudflared, "CACHE_DIR", tmp_path)
        monkeypatch.setattr(cloudflared, "platform_asset", lambda: ("asset", "cloudflared"))
        with patch("shareiscare.services.cloudflared.shutil.which", return_value=None):
            assert cloudflared.find_binary(Settings()) is None


def test_extract_tgz():
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        info = tarfile.TarInfo("cloudflared")
        info.size = 4
        tar.addfile(info, io.BytesIO(b"\x7fELF"))
    assert cloudflared._extract_tgz(buf.getvalue(), "cloudflared") == b"\x7fELF"

    with pytest.raises(SubprocessFailure):
        cloudflared._extract_tgz(buf.getvalue(), "other")


def _process(returncode=0, stdout=b"", stderr=b""):
    proc = MagicMock()
    proc.returncode = returncode
    proc.communicate = AsyncMock(return_value=(stdout, stderr))
    return proc


class TestRunCloudflared:
    @pytest.mark.asyncio
    async def test_returns_stdout(self):
        with patch(
            "shareiscare.services.cloudflared.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=_process(stdout=b"cloudflared version 2025.4.0")),
        ) as exec_mock:
            out = await cloudflared.run_cloudflared(Path("/bin/cf"), "version")
        assert out == "cloudflared version 2025.4.0"
        assert exec_mock.await_args.args[:2] == ("/bin/cf", "version")

    @pytest.mark.asyncio
    async def test_nonzero_exit(self):
        with patch(
            "shareiscare.services.cloudflared.asyncio.create_subprocess_exec",
            new=AsyncMock(return_value=_process(returncode=1, stderr=b"not logged in")),
        ):
            with pytest.raises(SubprocessFailure, match="not logged in"):
                await cloudflared.run_cloudflared(Path("/bin/cf"), "tunnel", "list")

    @pytest.mark.asyncio
    async def test_missing_binary(self, tmp_path):
        with pytest.raises(SubprocessFailure):
            await cloudflared.run_cloudflared(tmp_path / "does-not-exist", "version")


class TestFindTunnelId:
    @pytest.mark.asyncio
    async def test_found(self):
        listing = json.dumps([{"id": "abc-123", "name": "share"}])
        with patch.object(cloudflared, "run_cloudflared", new=AsyncMock(return_value=listing)) as run:
            assert await cloudflared.find_tunnel_id(Path("cf"), "share") == "abc-123"
        run.assert_awaited_once_with(Path("cf"), "tunnel", "list", "--name", "share", "--output", "json")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("output", ["[]", "", "null"])
    async def test_not_found(self, output):
        with patch.object(cloudflared, "run_cloudflared", new=AsyncMock(return_value=output)):
            with pytest.raises(TunnelProvisioningError):
                await cloudflared.find_tunnel_id(Path("cf"), "share")

    @pytest.mark.asyncio
    async def test_garbage_output(self):
        with patch.object(cloudflared, "run_cloudflared", new=AsyncMock(return_value="not json")):
            with pytest.raises(TunnelProvisioningError):
                await cloudflared.find_tunnel_id(Path("cf"), "share")


class TestEnsureCredentials:
    @pytest.mark.asyncio
    async def test_created_from_token(self, tmp_path):
        with patch.object(cloudflared, "run_cloudflared", new=AsyncMock(return_value="secret-token\n")):
            path = await cloudflared.ensure_credentials(Path("cf"), "tid", "share", "acct", tmp_path)

        assert path == tmp_path / "tid.json"
        assert json.loads(path.read_text()) == {
            "AccountTag": "acct",
            "TunnelSecret": "secret-token",
            "TunnelID": "tid",
            "TunnelName": "share",
        }

    @pytest.mark.asyncio
    async def test_existing_file_reused(self, tmp_path):
        (tmp_path / "tid.json").write_text('{"TunnelID": "tid"}')
        run = AsyncMock()
        with patch.object(cloudflared, "run_cloudflared", new=run):
            await cloudflared.ensure_credentials(Path("cf"), "tid", "share", "acct", tmp_path)
        run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_corrupt_file(self, tmp_path):
        (tmp_path / "tid.json").write_text("{broken")
        with pytest.raises(TunnelProvisioningError):
            await cloudflared.ensure_credentials(Path("cf"), "tid", "share", "acct", tmp_path)


class TestWriteTunnelConfig:
    def test_ingress(self, tmp_path):
        path = cloudflared.write_tunnel_config("share", tmp_path / "tid.json", "abc.example.com", 8080)
        try:
            config = yaml.safe_load(path.read_text())
        finally:
            path.unlink()

        assert config["tunnel"] == "share"
        assert config["credentials-file"] == str(tmp_path / "tid.json")
        assert config["ingress"] == [
            {"hostname": "abc.example.com", "service": "http://localhost:8080"},
            {"service": "http_status:404"},
        ]

    @pytest.mark.parametrize("port", [0, -1, 70000])
    def test_invalid_port(self, tmp_path, port):
        with pytest.raises(TunnelProvisioningError):
            cloudflared.write_tunnel_config("share", tmp_path / "c.json", "h", port)


class TestEnsureBinary:
    @pytest.mark.asyncio
    async def test_downloads_when_missing(self, tmp_path):
        downloaded = tmp_path / "cloudflared"
        with patch.object(cloudflared, "find_binary", return_value=None), \
                patch.object(cloudflared, "download_binary", new=AsyncMock(return_value=downloaded)) as dl, \
                patch.object(cloudflared, "run_cloudflared", new=AsyncMock(return_value="ok")) as run:
            assert await cloudflared.ensure_binary(Settings()) == downloaded

        dl.assert_awaited_once_with("2025.4.0")
        run.assert_awaited_once_with(downloaded, "version")
