"""
配置管理器 - 读取和管理插件配置
"""
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..renderer.errors import ConfigurationError
from ..renderer.models import BrowserOptions


class ConfigManager:
    """
    配置管理器

    用于读取 AstrBot 传入的配置或使用默认配置
    AstrBot 配置格式为扁平结构: {"key": value, ...}
    """

    # 默认配置（扁平结构，与 _conf_schema.json 对应）
    DEFAULT_CONFIG = {
        "renderer_browser": "chromium",
        "browser_channel": "",
        "browser_proxy_host": "",
        "browser_download_host": "",
        "browser_auto_install": True,
        "browser_launch_args": [],
        "url_command_enabled": True,
    }

    _instance: Optional['ConfigManager'] = None
    _config: Dict[str, Any] = {}

    def __new__(cls):
        """单例模式"""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._config = cls.DEFAULT_CONFIG.copy()
        return cls._instance

    @classmethod
    def get_instance(cls) -> 'ConfigManager':
        """获取配置管理器实例"""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def load_config(self, config: Dict[str, Any]) -> None:
        """
        加载配置

        Args:
            config: AstrBot 传入的配置字典（扁平结构）
        """
        if config:
            self._config.update(config)

    def reset(self) -> None:
        """恢复默认配置"""
        self._config = self.DEFAULT_CONFIG.copy()

    def get(self, key: str, default: Any = None) -> Any:
        """
        获取配置值

        Args:
            key: 配置键名
            default: 默认值

        Returns:
            配置值
        """
        return self._config.get(key, default)

    def browser_options(self) -> BrowserOptions:
        """
        根据当前配置构造浏览器选项

        Raises:
            ConfigurationError: 配置项无效，如不支持的浏览器内核
        """
        args = self._config.get("browser_launch_args") or []
        if isinstance(args, str):
            args = args.split()
        try:
            return BrowserOptions(
                engine=self._config.get("renderer_browser") or "chromium",
                channel=self._config.get("browser_channel"),
                proxy_host=self._config.get("browser_proxy_host"),
                download_host=self._config.get("browser_download_host"),
                auto_install=self._config.get("browser_auto_install", True),
                launch_args=args,
            )
        except ValidationError as e:
            raise ConfigurationError(f"浏览器配置无效: {e}") from e

    @property
    def url_command_enabled(self) -> bool:
        """是否启用网页截图指令"""
        return bool(self._config.get("url_command_enabled", True))


# 全局配置实例
config = ConfigManager.get_instance()


def get_config() -> ConfigManager:
    """获取配置管理器"""
    return config
