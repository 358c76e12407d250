import os
import tempfile

from astrbot.api import logger
from astrbot.api.event import filter, AstrMessageEvent
from astrbot.api.star import Context, Star, register

from .core.common.config_manager import get_config
from .core.renderer.errors import RendererError
from .core.renderer.service import HtmlRenderer, get_renderer, set_renderer


@register("astrbot_plugin_html_renderer", "shskjw",
          "HTML 渲染服务 - 使用无头浏览器把 HTML 模板 / HTML 文件 / 网页渲染为图片，供其他插件调用", "1.0.0")
class HtmlRendererPlugin(Star):
    def __init__(self, context: Context, config=None):
        try:
            super().__init__(context, config)
        except TypeError:
            super().__init__(context)

        # 加载插件配置
        self.config_manager = get_config()
        self.config_manager.reset()
        if config:
            self.config_manager.load_config(dict(config))

        # 渲染服务，浏览器在 initialize 中启动
        self.renderer = HtmlRenderer(self.config_manager.browser_options())

    async def initialize(self):
        """插件加载后启动浏览器并注册服务"""
        try:
            await self.renderer.start()
        except Exception as e:
            logger.error(f"[HtmlRenderer] 渲染服务启动失败: {type(e).__name__}: {e}")
            raise
        set_renderer(self.renderer)
        logger.info("[HtmlRenderer] 渲染服务已注册")

    async def terminate(self):
        """插件卸载时关闭浏览器"""
        set_renderer(None)
        await self.renderer.stop()

    def _bytes_to_image_path(self, img_bytes: bytes, suffix: str = ".png") -> str:
        """将图片字节转换为临时文件路径，供 event.image_result 使用"""
        fd, path = tempfile.mkstemp(suffix=suffix)
        with os.fdopen(fd, 'wb') as tmp:
            tmp.write(img_bytes)
        return path

    @filter.command("网页截图")
    async def cmd_render_url(self, event: AstrMessageEvent):
        """网页截图 <网址>"""
        if not self.config_manager.url_command_enabled:
            yield event.plain_result("网页截图功能未启用")
            return

        parts = event.message_str.strip().split(maxsplit=1)
        if len(parts) < 2:
            yield event.plain_result("用法: 网页截图 <网址>")
            return
        url = parts[1].strip()
        if not url.startswith(("http://", "https://")):
            url = "https://" + url

        try:
            img_bytes = await get_renderer().render_url(url, render_options={"wait_time": 500})
        except RendererError as e:
            yield event.plain_result(f"网页截图失败: {e}")
            return

        yield event.image_result(self._bytes_to_image_path(img_bytes))

    @filter.command("渲染器状态")
    async def cmd_renderer_status(self, event: AstrMessageEvent):
        """显示渲染服务状态"""
        state = "运行中" if self.renderer.is_ready else "未启动"
        options = self.renderer.options
        lines = [
            "HTML 渲染服务",
            f"浏览器内核: {options.engine.value}",
            f"状态: {state}",
        ]
        if options.channel:
            lines.append(f"浏览器通道: {options.channel}")
        if options.proxy_host:
            lines.append(f"代理: {options.proxy_host}")
        yield event.plain_result("\n".join(lines))
