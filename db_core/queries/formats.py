"""
查询资源格式模块

每种格式都实现同一个能力：把资源文本解析为 标识 -> SQL文本 的扁平映射。
内置格式按注册顺序查找：.properties、.json、.toml、.xml。

- .properties: key=value 或 key: value，# 和 ! 开头为注释，行尾反斜杠续行
- .json / .toml: 嵌套对象的键以 "." 连接
- .xml: <queries><query id="...">SQL</query></queries>
"""

import json
import tomllib
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Protocol, Tuple

from ..utils.logging_utils import get_logger

logger = get_logger(__name__)


class EntriesProvider(Protocol):
    """查询资源解析器"""

    def parse(self, text: str) -> Dict[str, str]: ...


class PropertiesProvider:
    """Java properties 风格的扁平键值文件"""

    SEPARATORS = ("=", ":")

    def parse(self, text: str) -> Dict[str, str]:
        entries: Dict[str, str] = {}
        for line in self._logical_lines(text):
            key, value = self._split(line)
            if key:
                entries[key] = value
        return entries

    def _logical_lines(self, text: str) -> List[str]:
        lines: List[str] = []
        buffer = ""
        for raw in text.splitlines():
            stripped = raw.strip()
            if not buffer and (not stripped or stripped[0] in "#!"):
                continue
            # 奇数个反斜杠结尾表示续行
            trailing = len(stripped) - len(stripped.rstrip("\\"))
            if trailing % 2 == 1:
                buffer += stripped[:-1]
                continue
            lines.append(buffer + stripped)
            buffer = ""
        if buffer:
            lines.append(buffer)
        return lines

    def _split(self, line: str) -> Tuple[str, str]:
        positions = [line.find(sep) for sep in self.SEPARATORS if sep in line]
        if not positions:
            return line.strip(), ""
        index = min(positions)
        return line[:index].strip(), line[index + 1 :].strip()


def _flatten(data: Any, prefix: str, entries: Dict[str, str]) -> None:
    if isinstance(data, dict):
        for key, value in data.items():
            _flatten(value, f"{prefix}.{key}" if prefix else str(key), entries)
    elif isinstance(data, list):
        logger.debug(f"忽略列表类型的查询条目: {prefix}")
    elif data is not None and prefix:
        entries[prefix] = data if isinstance(data, str) else json.dumps(data)


class JsonProvider:
    """嵌套JSON对象，叶子节点为SQL文本"""

    def parse(self, text: str) -> Dict[str, str]:
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("JSON查询资源的顶层必须是对象")
        entries: Dict[str, str] = {}
        _flatten(data, "", entries)
        return entries


class TomlProvider:
    """嵌套TOML表，叶子节点为SQL文本"""

    def parse(self, text: str) -> Dict[str, str]:
        entries: Dict[str, str] = {}
        _flatten(tomllib.loads(text), "", entries)
        return entries


class XmlProvider:
    """
    标签格式的查询资源

    Example::

        <queries>
            <query id="create_table">CREATE TABLE ...</query>
        </queries>
    """

    TAG = "query"
    ID_ATTRIBUTE = "id"

    def parse(self, text: str) -> Dict[str, str]:
        root = ET.fromstring(text)
        entries: Dict[str, str] = {}
        for element in root.iter(self.TAG):
            identifier = element.get(self.ID_ATTRIBUTE)
            if not identifier:
                logger.warning(f"忽略缺少 '{self.ID_ATTRIBUTE}' 属性的 <{self.TAG}> 元素")
                continue
            entries[identifier] = (element.text or "").strip()
        return entries


_FORMATS: Dict[str, EntriesProvider] = {
    ".properties": PropertiesProvider(),
    ".json": JsonProvider(),
    ".toml": TomlProvider(),
    ".xml": XmlProvider(),
}


def register_format(extension: str, provider: EntriesProvider) -> None:
    """
    注册或替换某个扩展名的解析器

    Args:
        extension: 文件扩展名，可以带或不带前导 "."
        provider: 实现了 parse(text) 的解析器
    """
    if not extension.startswith("."):
        extension = "." + extension
    _FORMATS[extension.lower()] = provider
    logger.debug(f"已注册查询资源格式: {extension}")


def get_formats() -> List[Tuple[str, EntriesProvider]]:
    """按注册顺序返回 (扩展名, 解析器) 列表"""
    return list(_FORMATS.items())
