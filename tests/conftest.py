"""
测试用的 Playwright 替身 - 不启动真实浏览器
"""
import asyncio
from pathlib import Path

import pytest
from playwright.async_api import Error as PlaywrightError


class FakePage:
    def __init__(self, browser, **kwargs):
        self.browser = browser
        self.kwargs = kwargs
        self.content = None
        self.url = None
        self.wait_until = None
        self.waited = None
        self.screenshot_kwargs = None
        self.closed = False

    async def set_content(self, html, wait_until=None):
        self.content = html
        self.wait_until = wait_until
        await asyncio.sleep(0)

    async def goto(self, url, wait_until=None):
        self.wait_until = wait_until
        if self.browser.goto_error:
            raise PlaywrightError(self.browser.goto_error)
        self.url = url

    async def wait_for_timeout(self, timeout):
        self.waited = timeout
        await asyncio.sleep(0)

    async def screenshot(self, **kwargs):
        self.screenshot_kwargs = kwargs
        return (self.content or self.url or "").encode("utf-8")

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, engine, launch_kwargs):
        self.engine = engine
        self.launch_kwargs = launch_kwargs
        self.pages = []
        self.closed = False
        self.goto_error = None

    async def new_page(self, **kwargs):
        page = FakePage(self, **kwargs)
        self.pages.append(page)
        return page

    async def close(self):
        self.closed = True


class FakeBrowserType:
    def __init__(self, name, executable):
        self.name = name
        self.executable = executable
        self.browsers = []
        self.launch_error = None

    @property
    def executable_path(self):
        return str(self.executable)

    async def launch(self, **kwargs):
        if self.launch_error:
            raise PlaywrightError(self.launch_error)
        browser = FakeBrowser(self.name, kwargs)
        self.browsers.append(browser)
        return browser


class FakePlaywright:
    def __init__(self, root: Path):
        self.chromium = FakeBrowserType("chromium", root / "chromium" / "chrome")
        self.webkit = FakeBrowserType("webkit", root / "webkit" / "pw_run.sh")
        self.firefox = FakeBrowserType("firefox", root / "firefox" / "firefox")
        self.started = 0
        self.stopped = 0

    def install(self, name):
        exe = getattr(self, name).executable
        exe.parent.mkdir(parents=True, exist_ok=True)
        exe.write_text("")

    async def start(self):
        self.started += 1
        return self

    async def stop(self):
        self.stopped += 1


class FakeInstaller:
    def __init__(self, playwright: FakePlaywright, error=None):
        self.playwright = playwright
        self.error = error
        self.installed = []

    async def install(self, engine):
        self.installed.append(engine.value)
        if self.error:
            raise self.error
        self.playwright.install(engine.value)


@pytest.fixture
def fake_playwright(tmp_path):
    pw = FakePlaywright(tmp_path / "ms-playwright")
    for name in ("chromium", "webkit", "firefox"):
        pw.install(name)
    return pw


@pytest.fixture
def empty_playwright(tmp_path):
    """没有安装任何浏览器"""
    return FakePlaywright(tmp_path / "ms-playwright")
