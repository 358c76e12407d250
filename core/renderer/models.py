"""
渲染器数据模型 - 浏览器 / 页面 / 渲染选项
"""
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BrowserEngine(str, Enum):
    """可用的浏览器内核"""
    CHROMIUM = "chromium"
    WEBKIT = "webkit"
    FIREFOX = "firefox"


class BrowserOptions(BaseModel):
    """浏览器选项，服务构造后不可变"""
    model_config = ConfigDict(frozen=True)

    engine: BrowserEngine = BrowserEngine.CHROMIUM
    proxy_host: Optional[str] = None  # 浏览器代理地址
    channel: Optional[str] = None  # 浏览器通道 chrome / msedge ...
    download_host: Optional[str] = None  # 浏览器下载镜像
    auto_install: bool = True  # 未检测到浏览器时自动安装
    launch_args: List[str] = Field(default_factory=list)

    @field_validator("proxy_host", "channel", "download_host", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        # AstrBot 表单里未填写的字符串项为 ""
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    def launch_kwargs(self) -> Dict[str, Any]:
        """组装 BrowserType.launch 的参数"""
        kwargs: Dict[str, Any] = {"headless": True}
        if self.proxy_host:
            kwargs["proxy"] = {"server": self.proxy_host}
        if self.channel:
            kwargs["channel"] = self.channel
        if self.launch_args:
            kwargs["args"] = list(self.launch_args)
        return kwargs


class Viewport(BaseModel):
    width: int = Field(default=800, gt=0)
    height: int = Field(default=600, gt=0)


class PageOptions(BaseModel):
    """页面参数，每次渲染单独构造"""
    viewport: Viewport = Field(default_factory=Viewport)
    base_url: str = ""  # 用于解析页面中的相对路径


class RenderOptions(BaseModel):
    """渲染选项，每次渲染单独构造"""
    wait_time: int = Field(default=0, ge=0)  # 加载完成后额外等待的毫秒数
    type: Literal["png", "jpeg"] = "png"
    quality: Optional[int] = Field(default=None, ge=0, le=100)  # 仅 jpeg 生效
    scale: float = Field(default=2, gt=0)

    def screenshot_kwargs(self) -> Dict[str, Any]:
        """组装 Page.screenshot 的参数，png 不接受 quality"""
        kwargs: Dict[str, Any] = {"full_page": True, "type": self.type}
        if self.type == "jpeg" and self.quality is not None:
            kwargs["quality"] = self.quality
        return kwargs


PageOptionsLike = Union[PageOptions, Dict[str, Any], None]
RenderOptionsLike = Union[RenderOptions, Dict[str, Any], None]


def resolve_page_options(page_options: PageOptionsLike, default_base_url: str = "") -> PageOptions:
    """
    补全页面参数

    Args:
        page_options: 调用方传入的页面参数，可以是 PageOptions、dict 或 None
        default_base_url: 调用方未指定 base_url 时使用的值

    Returns:
        新的 PageOptions
    """
    if page_options is None:
        return PageOptions(base_url=default_base_url)
    if isinstance(page_options, PageOptions):
        data = page_options.model_dump(exclude_unset=True)
    else:
        data = dict(page_options)
    data.setdefault("base_url", default_base_url)
    return PageOptions.model_validate(data)


def resolve_render_options(render_options: RenderOptionsLike) -> RenderOptions:
    """补全渲染选项"""
    if render_options is None:
        return RenderOptions()
    if isinstance(render_options, RenderOptions):
        return render_options
    return RenderOptions.model_validate(render_options)
