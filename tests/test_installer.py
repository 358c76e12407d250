import asyncio
import os
import sys

import pytest

from core.renderer import installer as installer_module
from core.renderer.errors import InstallError
from core.renderer.installer import BrowserInstaller
from core.renderer.models import BrowserEngine, BrowserOptions


class FakeProcess:
    def __init__(self, returncode, output=b""):
        self.returncode = returncode
        self.output = output

    async def communicate(self):
        return self.output, None


@pytest.fixture
def spawned(monkeypatch):
    calls = []
    result = {"process": FakeProcess(0, b"done")}

    async def fake_exec(*cmd, **kwargs):
        calls.append((cmd, kwargs))
        if isinstance(result["process"], Exception):
            raise result["process"]
        return result["process"]

    monkeypatch.setattr(installer_module.asyncio, "create_subprocess_exec", fake_exec)
    return calls, result


def test_build_env_does_not_touch_process_env(monkeypatch):
    monkeypatch.delenv("PLAYWRIGHT_DOWNLOAD_HOST", raising=False)
    opts = BrowserOptions(download_host="https://npmmirror.com/mirrors/playwright/", proxy_host="http://p:1")
    env = BrowserInstaller(opts).build_env()
    assert env["PLAYWRIGHT_DOWNLOAD_HOST"] == "https://npmmirror.com/mirrors/playwright/"
    assert env["HTTPS_PROXY"] == "http://p:1"
    assert env["HTTP_PROXY"] == "http://p:1"
    assert "PLAYWRIGHT_DOWNLOAD_HOST" not in os.environ


def test_build_env_without_mirror(monkeypatch):
    monkeypatch.delenv("PLAYWRIGHT_DOWNLOAD_HOST", raising=False)
    env = BrowserInstaller(BrowserOptions()).build_env()
    assert "PLAYWRIGHT_DOWNLOAD_HOST" not in env


async def test_install_only_configured_engine(spawned):
    calls, _ = spawned
    await BrowserInstaller(BrowserOptions(engine="webkit")).install(BrowserEngine.WEBKIT)
    cmd, kwargs = calls[0]
    assert list(cmd) == [sys.executable, "-m", "playwright", "install", "webkit"]
    assert kwargs["stdout"] == asyncio.subprocess.PIPE


async def test_install_non_zero_exit(spawned):
    _, result = spawned
    result["process"] = FakeProcess(1, b"Failed to download")
    with pytest.raises(InstallError) as exc:
        await BrowserInstaller(BrowserOptions()).install(BrowserEngine.CHROMIUM)
    assert exc.value.engine == "chromium"
    assert "Failed to download" in exc.value.output


async def test_install_spawn_failure(spawned):
    _, result = spawned
    result["process"] = FileNotFoundError("python")
    with pytest.raises(InstallError):
        await BrowserInstaller(BrowserOptions(), python="/nonexistent/python").install(BrowserEngine.FIREFOX)


class HangingProcess(FakeProcess):
    def __init__(self):
        super().__init__(None)
        self.killed = False

    async def communicate(self):
        await asyncio.Event().wait()

    def kill(self):
        self.killed = True


async def test_cancelled_install_kills_process(spawned):
    _, result = spawned
    proc = HangingProcess()
    result["process"] = proc
    task = asyncio.create_task(BrowserInstaller(BrowserOptions()).install(BrowserEngine.CHROMIUM))
    for _ in range(5):
        await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert proc.killed
