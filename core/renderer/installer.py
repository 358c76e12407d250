"""
浏览器安装器 - 调用 `python -m playwright install <engine>` 安装缺失的内核

镜像源和代理只通过子进程的环境变量传递，不修改当前进程的 os.environ
"""
import asyncio
import logging
import os
import sys
from typing import Dict, Optional

from .engines import get_engine
from .errors import InstallError
from .models import BrowserEngine, BrowserOptions

logger = logging.getLogger("astrbot")

# 安装失败时在异常中保留的输出长度
_OUTPUT_TAIL = 2000


class BrowserInstaller:
    """
    浏览器安装器

    用法:
        installer = BrowserInstaller(options)
        await installer.install(BrowserEngine.CHROMIUM)
    """

    def __init__(self, options: BrowserOptions, python: Optional[str] = None):
        self.options = options
        self.python = python or sys.executable

    def build_env(self) -> Dict[str, str]:
        """构造安装子进程使用的环境变量"""
        env = dict(os.environ)
        if self.options.download_host:
            env["PLAYWRIGHT_DOWNLOAD_HOST"] = self.options.download_host
        if self.options.proxy_host:
            env["HTTPS_PROXY"] = self.options.proxy_host
            env["HTTP_PROXY"] = self.options.proxy_host
        return env

    async def install(self, engine: BrowserEngine) -> None:
        """
        安装指定内核

        Args:
            engine: 需要安装的浏览器内核

        Raises:
            InstallError: 安装进程无法启动或返回非零退出码
        """
        spec = get_engine(engine)
        cmd = [self.python, "-m", "playwright", *spec.install_args]
        logger.info(f"[HtmlRenderer] 正在安装浏览器: {spec.engine.value}")
        if self.options.download_host:
            logger.info(f"[HtmlRenderer] 使用下载镜像: {self.options.download_host}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                env=self.build_env(),
            )
        except OSError as e:
            logger.error(f"[HtmlRenderer] 启动安装进程失败: {e}")
            raise InstallError(spec.engine.value, str(e)) from e

        try:
            stdout, _ = await proc.communicate()
        except BaseException:
            # 被取消时结束安装进程，避免留下孤儿进程
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            raise
        output = (stdout or b"").decode("utf-8", errors="replace")
        if proc.returncode != 0:
            tail = output[-_OUTPUT_TAIL:]
            logger.error(f"[HtmlRenderer] 安装浏览器失败 (exit={proc.returncode}):\n{tail}")
            raise InstallError(spec.engine.value, f"安装进程退出码 {proc.returncode}", tail)

        logger.info(f"[HtmlRenderer] 浏览器: {spec.engine.value} 安装成功")
