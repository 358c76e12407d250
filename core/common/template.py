"""
模板引擎 - 使用 EJS 风格分隔符的 jinja2 环境

    <%= expr %>   输出并转义
    <%- expr %>   原样输出
    <% stmt %>    控制语句，如 <% for item in items %> ... <% endfor %>
    <%# text %>   注释

与 EJS 一致，值为 None 时输出空字符串
"""
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from jinja2 import Environment, FileSystemLoader, StrictUndefined, Undefined
from jinja2 import TemplateError as JinjaTemplateError
from jinja2.ext import Extension
from markupsafe import Markup

from ..renderer.errors import TemplateError

# 结尾的 - 属于 -%> 空白控制，不属于表达式
_RAW_OUTPUT = re.compile(r"<%-\s*(.*?)\s*(-?)%>", re.S)

# 按模板目录缓存的环境数量上限
_MAX_ENVS = 32


def translate_raw_output(text: str) -> str:
    """把 <%- expr %> 改写为 <%= (expr) | unescaped %>"""
    return _RAW_OUTPUT.sub(
        lambda m: "<%= (" + m.group(1) + ") | unescaped " + m.group(2) + "%>", text
    )


def _none_as_empty(value):
    return "" if value is None else value


def unescaped(value):
    """原样输出过滤器"""
    if value is None:
        return Markup("")
    return Markup(str(value))


class RawOutputExtension(Extension):
    """在词法分析前改写原样输出标签，对 include 进来的模板同样生效"""

    def preprocess(self, source, name, filename=None):
        return translate_raw_output(source)


class TemplateEngine:
    def __init__(self, strict: bool = True):
        self.strict = strict
        self._envs: Dict[Optional[str], Environment] = {}

    def _env(self, search_path: Optional[Union[str, Path]] = None) -> Environment:
        key = str(search_path) if search_path else None
        env = self._envs.get(key)
        if env is None:
            env = Environment(
                loader=FileSystemLoader(key) if key else None,
                block_start_string="<%",
                block_end_string="%>",
                variable_start_string="<%=",
                variable_end_string="%>",
                comment_start_string="<%#",
                comment_end_string="%>",
                autoescape=True,
                enable_async=True,
                undefined=StrictUndefined if self.strict else Undefined,
                finalize=_none_as_empty,
                extensions=[RawOutputExtension],
            )
            env.filters["unescaped"] = unescaped
            if len(self._envs) >= _MAX_ENVS:
                # 淘汰最早创建的环境
                self._envs.pop(next(iter(self._envs)))
            self._envs[key] = env
        return env

    async def render_string(
        self,
        text: str,
        args: Optional[Mapping[str, Any]] = None,
        search_path: Optional[Union[str, Path]] = None,
    ) -> str:
        """
        渲染模板文本

        Args:
            text: 模板内容
            args: 模板参数，键必须是字符串
            search_path: include / extends 引用其他模板时的查找目录

        Returns:
            渲染后的 HTML

        Raises:
            TemplateError: 模板语法错误、变量未定义或参数键不是字符串
        """
        context = dict(args or {})
        bad_keys = [k for k in context if not isinstance(k, str)]
        if bad_keys:
            raise TemplateError(f"模板参数的键必须是字符串: {bad_keys!r}")
        try:
            tpl = self._env(search_path).from_string(text)
            return await tpl.render_async(**context)
        except JinjaTemplateError as e:
            raise TemplateError(f"模板渲染失败: {e}") from e
