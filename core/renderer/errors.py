"""
渲染器异常
"""
from typing import Optional


class RendererError(Exception):
    """渲染器异常基类"""


class ConfigurationError(RendererError):
    """配置项缺失或无效"""


class BrowserUnavailableError(RendererError):
    """未检测到浏览器，且未安装或安装后仍不可用"""

    def __init__(self, engine: str, executable_path: Optional[str] = None):
        self.engine = engine
        self.executable_path = executable_path
        super().__init__(
            f"未检测到浏览器 {engine}，请执行 `python -m playwright install {engine}` "
            f"或访问 https://playwright.dev/python/docs/browsers 安装浏览器"
        )


class InstallError(RendererError):
    """自动安装浏览器失败"""

    def __init__(self, engine: str, message: str, output: str = ""):
        self.engine = engine
        self.output = output
        super().__init__(f"安装浏览器 {engine} 失败: {message}")


class TemplateError(RendererError):
    """模板语法错误或引用了不存在的变量"""


class RenderError(RendererError):
    """页面加载、等待或截图失败"""


class ServiceNotReadyError(RendererError):
    """服务尚未启动或已经停止"""

    def __init__(self, message: str = "HTML 渲染服务未就绪，请先启动服务"):
        super().__init__(message)
