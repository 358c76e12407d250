"""
HTML 渲染服务 - 持有一个浏览器进程，把模板 / HTML / URL 渲染为图片

用法:
    renderer = HtmlRenderer(BrowserOptions(engine="chromium"))
    await renderer.start()
    img = await renderer.render_template_html("<p><%= name %></p>", {"name": "Alice"})
    await renderer.stop()
"""
import asyncio
import logging
import re
from html import escape
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple, Union

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from pydantic import ValidationError

from ..common.file_reader import async_read_text, directory_url, source_path
from ..common.template import TemplateEngine
from .engines import EngineSpec, get_engine
from .errors import (
    BrowserUnavailableError,
    ConfigurationError,
    RenderError,
    ServiceNotReadyError,
    TemplateError,
)
from .installer import BrowserInstaller
from .models import (
    BrowserEngine,
    BrowserOptions,
    PageOptions,
    PageOptionsLike,
    RenderOptions,
    RenderOptionsLike,
    resolve_page_options,
    resolve_render_options,
)

logger = logging.getLogger("astrbot")

_HEAD_TAG = re.compile(r"<head(\s[^>]*)?>", re.I)

# 当前进程中已启动的渲染服务，供其他插件获取
_renderer: Optional["HtmlRenderer"] = None


def set_renderer(renderer: Optional["HtmlRenderer"]) -> None:
    global _renderer
    _renderer = renderer


def get_renderer() -> "HtmlRenderer":
    """获取已启动的渲染服务，未启动时抛出 ServiceNotReadyError"""
    if _renderer is None or not _renderer.is_ready:
        raise ServiceNotReadyError()
    return _renderer


def inject_base(html: str, base_url: str) -> str:
    """
    注入 <base href>，让 set_content 加载的页面能按 base_url 解析相对路径

    页面内容通过 set_content 设置时文档地址为 about:blank，
    上下文的 base_url 只作用于 goto，因此需要在文档里声明
    """
    if not base_url or "<base " in html.lower():
        return html
    tag = f'<base href="{escape(base_url, quote=True)}">'
    match = _HEAD_TAG.search(html)
    if match:
        return html[:match.end()] + tag + html[match.end():]
    return tag + html


def _launch_tip(message: str) -> Optional[str]:
    if "Executable doesn't exist" in message:
        return "请在控制台执行 `python -m playwright install` 安装浏览器"
    lowered = message.lower()
    if "missing dependencies" in lowered or "has been closed" in lowered:
        return "浏览器启动后崩溃，可能缺少系统依赖，请执行 `python -m playwright install-deps`"
    return None


class HtmlRenderer:
    """
    HTML 渲染服务

    生命周期: start() 启动浏览器 -> render_* 每次调用打开一个新页面并在结束后关闭 -> stop() 关闭浏览器
    """

    def __init__(
        self,
        options: Optional[BrowserOptions] = None,
        installer: Optional[BrowserInstaller] = None,
        template_engine: Optional[TemplateEngine] = None,
        playwright_factory: Callable[[], Any] = async_playwright,
    ):
        self.options = options or BrowserOptions()
        self.installer = installer or BrowserInstaller(self.options)
        self.template = template_engine or TemplateEngine()
        self._playwright_factory = playwright_factory
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lifecycle_lock = asyncio.Lock()

    @property
    def engine(self) -> BrowserEngine:
        return self.options.engine

    @property
    def is_ready(self) -> bool:
        return self._browser is not None

    # ========== 生命周期 ==========
    async def start(self) -> None:
        """
        启动浏览器

        Raises:
            BrowserUnavailableError: 未检测到浏览器且未开启自动安装，或安装后仍不可用
            InstallError: 自动安装失败
            playwright.async_api.Error: 浏览器进程无法启动
        """
        async with self._lifecycle_lock:
            if self._browser is not None:
                logger.debug("[HtmlRenderer] 浏览器已在运行，跳过启动")
                return

            spec = get_engine(self.options.engine)
            playwright = await self._playwright_factory().start()
            try:
                if not spec.is_installed(playwright):
                    await self._install_browser(spec, playwright)
                browser = await self._launch(spec, playwright)
            except BaseException:
                await playwright.stop()
                raise

            self._playwright = playwright
            self._browser = browser
            logger.info(f"[HtmlRenderer] 浏览器 {spec.engine.value} 启动完成")

    async def stop(self) -> None:
        """关闭浏览器，未启动或已关闭时不做任何事"""
        async with self._lifecycle_lock:
            browser, playwright = self._browser, self._playwright
            self._browser = None
            self._playwright = None
            if browser is None and playwright is None:
                return

            logger.debug("[HtmlRenderer] 正在关闭浏览器...")
            try:
                if browser is not None:
                    await browser.close()
            finally:
                if playwright is not None:
                    await playwright.stop()
            logger.info("[HtmlRenderer] 浏览器已关闭")

    async def _install_browser(self, spec: EngineSpec, playwright: Playwright) -> None:
        path = spec.executable_path(playwright)
        if not self.options.auto_install:
            logger.error(
                f"[HtmlRenderer] 未检测到浏览器 {spec.engine.value} ({path})，"
                f"访问 https://playwright.dev/python/docs/browsers 以安装浏览器"
            )
            raise BrowserUnavailableError(spec.engine.value, path)

        logger.info(f"[HtmlRenderer] 未检测到浏览器 {spec.engine.value}，即将安装浏览器")
        await self.installer.install(spec.engine)
        if not spec.is_installed(playwright):
            logger.error(f"[HtmlRenderer] 安装完成后仍未找到浏览器: {path}")
            raise BrowserUnavailableError(spec.engine.value, path)

    async def _launch(self, spec: EngineSpec, playwright: Playwright) -> Browser:
        logger.debug("[HtmlRenderer] 正在启动浏览器...")
        logger.debug(f"[HtmlRenderer] 正在以 {spec.engine.value} 浏览器启动服务")
        try:
            return await spec.browser_type(playwright).launch(**self.options.launch_kwargs())
        except PlaywrightError as e:
            logger.error(f"[HtmlRenderer] 启动浏览器失败: {e}")
            tip = _launch_tip(str(e))
            if tip:
                logger.error(f"[HtmlRenderer] {tip}")
            raise

    # ========== 渲染 ==========
    async def render_template_html_file(
        self,
        template_path: Union[str, Path],
        template_name: str,
        templates_args: Optional[Mapping[str, Any]] = None,
        page_options: PageOptionsLike = None,
        render_options: RenderOptionsLike = None,
    ) -> bytes:
        """
        渲染 HTML 模板文件到图片

        Args:
            template_path: 模板所在目录
            template_name: 模板文件名
            templates_args: 模板参数
            page_options: 页面参数，默认视口 800x600，base_url 为模板目录
            render_options: 渲染选项，默认 wait_time=0, type=png, scale=2

        Returns:
            图片字节
        """
        browser = self._require_browser()
        page_opts, render_opts = self._resolve(page_options, render_options, directory_url(template_path))
        template = await self._read_source(template_path, template_name, "模板")
        html = await self._substitute(template, templates_args, search_path=template_path)
        return await self._render_content(browser, html, page_opts, render_opts)

    async def render_html_file(
        self,
        file_path: Union[str, Path],
        file_name: str,
        page_options: PageOptionsLike = None,
        render_options: RenderOptionsLike = None,
    ) -> bytes:
        """渲染 HTML 文件到图片，文件内容不经过模板处理，base_url 默认为文件所在目录"""
        browser = self._require_browser()
        page_opts, render_opts = self._resolve(page_options, render_options, directory_url(file_path))
        html = await self._read_source(file_path, file_name, "html")
        return await self._render_content(browser, html, page_opts, render_opts)

    async def render_url(
        self,
        url: str,
        page_options: PageOptionsLike = None,
        render_options: RenderOptionsLike = None,
    ) -> bytes:
        """渲染 URL 到图片，base_url 默认为 url 本身"""
        browser = self._require_browser()
        page_opts, render_opts = self._resolve(page_options, render_options, url)

        async def load(page: Page) -> None:
            await page.goto(url, wait_until="networkidle")

        return await self._render_page(browser, page_opts, render_opts, load)

    async def render_template_html(
        self,
        template: str,
        templates_args: Optional[Mapping[str, Any]] = None,
        page_options: PageOptionsLike = None,
        render_options: RenderOptionsLike = None,
    ) -> bytes:
        """渲染模板文本到图片"""
        browser = self._require_browser()
        page_opts, render_opts = self._resolve(page_options, render_options, "")
        html = await self._substitute(template, templates_args)
        return await self._render_content(browser, html, page_opts, render_opts)

    async def render_html(
        self,
        html: str,
        page_options: PageOptionsLike = None,
        render_options: RenderOptionsLike = None,
    ) -> bytes:
        """渲染 HTML 文本到图片"""
        browser = self._require_browser()
        page_opts, render_opts = self._resolve(page_options, render_options, "")
        return await self._render_content(browser, html, page_opts, render_opts)

    # ========== 内部方法 ==========
    def _require_browser(self) -> Browser:
        if self._browser is None:
            raise ServiceNotReadyError()
        return self._browser

    @staticmethod
    def _resolve(
        page_options: PageOptionsLike,
        render_options: RenderOptionsLike,
        default_base_url: str,
    ) -> Tuple[PageOptions, RenderOptions]:
        try:
            return (
                resolve_page_options(page_options, default_base_url),
                resolve_render_options(render_options),
            )
        except ValidationError as e:
            logger.error(f"[HtmlRenderer] 渲染参数无效: {e}")
            raise ConfigurationError(f"渲染参数无效: {e}") from e

    async def _substitute(
        self,
        template: str,
        templates_args: Optional[Mapping[str, Any]],
        search_path: Optional[Union[str, Path]] = None,
    ) -> str:
        try:
            return await self.template.render_string(template, templates_args, search_path=search_path)
        except TemplateError as e:
            logger.error(f"[HtmlRenderer] {e}")
            raise

    @staticmethod
    async def _read_source(directory: Union[str, Path], name: str, kind: str) -> str:
        path = source_path(directory, name)
        try:
            return await async_read_text(path)
        except OSError as e:
            logger.error(f"[HtmlRenderer] 读取{kind}文件失败: {path}: {e}")
            raise

    async def _render_content(
        self,
        browser: Browser,
        html: str,
        page_opts: PageOptions,
        render_opts: RenderOptions,
    ) -> bytes:
        content = inject_base(html, page_opts.base_url)

        async def load(page: Page) -> None:
            await page.set_content(content, wait_until="networkidle")

        return await self._render_page(browser, page_opts, render_opts, load)

    async def _render_page(
        self,
        browser: Browser,
        page_opts: PageOptions,
        render_opts: RenderOptions,
        load: Callable[[Page], Awaitable[None]],
    ) -> bytes:
        page_kwargs: Dict[str, Any] = {
            "viewport": page_opts.viewport.model_dump(),
            "device_scale_factor": render_opts.scale,
        }
        if page_opts.base_url:
            page_kwargs["base_url"] = page_opts.base_url

        try:
            page = await browser.new_page(**page_kwargs)
        except PlaywrightError as e:
            logger.error(f"[HtmlRenderer] 打开页面失败: {e}")
            raise RenderError(f"打开页面失败: {e}") from e

        try:
            await load(page)
            await page.wait_for_timeout(render_opts.wait_time)
            image = await page.screenshot(**render_opts.screenshot_kwargs())
        except PlaywrightError as e:
            logger.error(f"[HtmlRenderer] 渲染失败: {e}")
            raise RenderError(f"渲染失败: {e}") from e
        finally:
            await self._close_page(page)
        logger.debug(f"[HtmlRenderer] 渲染完成，图片大小: {len(image)} bytes")
        return image

    @staticmethod
    async def _close_page(page: Page) -> None:
        try:
            await page.close()
        except PlaywrightError as e:
            # 浏览器已退出时页面无法再关闭
            logger.warning(f"[HtmlRenderer] 关闭页面失败: {e}")
