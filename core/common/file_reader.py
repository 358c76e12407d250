"""
文件读取 - 使用 aiofiles 异步读取模板 / HTML 文件，防止阻塞事件循环
"""
from pathlib import Path
from typing import Union

import aiofiles


def source_path(directory: Union[str, Path], name: str) -> Path:
    """拼接源文件路径"""
    return Path(directory) / name


def directory_url(directory: Union[str, Path]) -> str:
    """目录的 file:// 地址，末尾带 /，用作页面 base_url"""
    url = Path(directory).resolve().as_uri()
    return url if url.endswith("/") else url + "/"


async def async_read_text(path: Union[str, Path], encoding: str = "utf-8") -> str:
    """
    异步读取文本文件

    Raises:
        OSError: 文件不存在或无法读取
    """
    async with aiofiles.open(path, "r", encoding=encoding) as f:
        return await f.read()
