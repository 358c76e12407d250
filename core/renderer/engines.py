"""
浏览器内核表 - 每个内核对应的 BrowserType / 可执行文件 / 安装参数
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Tuple, Union

from playwright.async_api import BrowserType, Playwright

from .errors import ConfigurationError
from .models import BrowserEngine


@dataclass(frozen=True)
class EngineSpec:
    engine: BrowserEngine
    select: Callable[[Playwright], BrowserType]

    def browser_type(self, playwright: Playwright) -> BrowserType:
        return self.select(playwright)

    def executable_path(self, playwright: Playwright) -> str:
        return self.browser_type(playwright).executable_path

    def is_installed(self, playwright: Playwright) -> bool:
        """检查内核可执行文件是否存在"""
        path = self.executable_path(playwright)
        return bool(path) and Path(path).exists()

    @property
    def install_args(self) -> Tuple[str, ...]:
        # 只安装当前内核，不安装全部浏览器
        return ("install", self.engine.value)


ENGINES: Dict[BrowserEngine, EngineSpec] = {
    BrowserEngine.CHROMIUM: EngineSpec(BrowserEngine.CHROMIUM, lambda p: p.chromium),
    BrowserEngine.WEBKIT: EngineSpec(BrowserEngine.WEBKIT, lambda p: p.webkit),
    BrowserEngine.FIREFOX: EngineSpec(BrowserEngine.FIREFOX, lambda p: p.firefox),
}


def get_engine(engine: Union[BrowserEngine, str]) -> EngineSpec:
    """按名称获取内核，未知内核抛出 ConfigurationError"""
    try:
        return ENGINES[BrowserEngine(engine)]
    except ValueError:
        available = ", ".join(e.value for e in BrowserEngine)
        raise ConfigurationError(f"不支持的浏览器内核: {engine}，可选: {available}") from None
