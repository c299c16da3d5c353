"""
查询链模块

按基础名称和厂商加载一组查询资源，并从最具体到最通用依次链接：

    queries_MySQL-8  ->  queries_MySQL  ->  queries

厂商或版本专用的资源只需包含要覆盖的标识，其余标识会沿链回落到通用资源。
缺失的中间层级直接跳过，例如只有 queries 和 queries_MySQL-8 时，
queries_MySQL-8 的父节点就是 queries。

查找结果缓存在发起查找的节点上。多个线程同时首次查找同一标识时可能各自遍历一次链，
写入缓存的值相同，因此不加锁。
"""

import xml.etree.ElementTree as ET
from importlib.resources.abc import Traversable
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

from ..core.exceptions import QueryNotFoundError, ResourceNotFoundError
from ..drivers.vendor import Vendor
from ..utils.logging_utils import get_logger
from .formats import get_formats

logger = get_logger(__name__)

ResourceRoot = Union[str, Path, Traversable]


class QueryChain:
    """
    查询链节点

    Attributes:
        source (str): 节点对应的资源文件名
        entries (Mapping[str, str]): 只读的 标识 -> SQL文本 映射
        cache (Dict[str, str]): 通过本节点解析过的标识缓存
        parent (Optional[QueryChain]): 下一个更通用的节点
    """

    def __init__(
        self,
        source: str,
        entries: Mapping[str, str],
        parent: Optional["QueryChain"] = None,
    ) -> None:
        self.source = source
        self.entries: Mapping[str, str] = MappingProxyType(dict(entries))
        self.parent = parent
        self.cache: Dict[str, str] = {}

    def resolve(self, identifier: str) -> str:
        """
        解析查询标识

        先查本节点缓存，再从本节点开始沿父链查找，命中后写入本节点缓存。

        Raises:
            QueryNotFoundError: 链上所有节点都不包含该标识时
        """
        cached = self.cache.get(identifier)
        if cached is not None:
            return cached

        for node in self.nodes():
            value = node.entries.get(identifier)
            if value is not None:
                self.cache[identifier] = value
                return value

        raise QueryNotFoundError(identifier, self.source)

    def get(self, identifier: str, default: Optional[str] = None) -> Optional[str]:
        try:
            return self.resolve(identifier)
        except QueryNotFoundError:
            return default

    def nodes(self) -> Iterator["QueryChain"]:
        """从本节点开始依次返回链上的节点"""
        node: Optional[QueryChain] = self
        while node is not None:
            yield node
            node = node.parent

    @property
    def sources(self) -> List[str]:
        return [node.source for node in self.nodes()]

    def __contains__(self, identifier: object) -> bool:
        return any(identifier in node.entries for node in self.nodes())

    def __repr__(self) -> str:
        return f"QueryChain({' -> '.join(self.sources)})"

    @classmethod
    def get_chain(
        cls, base_name: str, vendor: Vendor, root: ResourceRoot
    ) -> "QueryChain":
        """
        构建查询链

        Args:
            base_name: 资源基础名称，例如 "queries"
            vendor: 目标厂商
            root: 资源所在目录，或 importlib.resources.files() 返回的包资源

        Returns:
            QueryChain: 链头，即已加载的最具体节点

        Raises:
            ResourceNotFoundError: 没有任何候选资源可以加载时
        """
        if isinstance(root, str):
            root = Path(root)

        head: Optional[QueryChain] = None
        for candidate in candidate_names(base_name, vendor):
            loaded = _load_candidate(root, candidate)
            if loaded is None:
                logger.debug(f"查询资源不存在，跳过: {candidate}")
                continue
            source, entries = loaded
            head = cls(source, entries, parent=head)
            logger.debug(f"已加载查询资源 {source}，共 {len(entries)} 条")

        if head is None:
            raise ResourceNotFoundError(
                f"基础名称 '{base_name}' 没有可用的查询资源 (厂商: {vendor})",
                error_code="QUERY_RESOURCE_NOT_FOUND",
                base_name=base_name,
                details={"vendor": str(vendor), "root": str(root)},
            )

        logger.info(f"查询链构建完成: {' -> '.join(head.sources)}")
        return head


def candidate_names(base_name: str, vendor: Vendor) -> List[str]:
    """
    按从通用到具体的顺序生成候选资源名称

    Example:
        >>> candidate_names("queries", Vendor("MySQL", 8))
        ['queries', 'queries_MySQL', 'queries_MySQL-8']
    """
    names = [base_name]
    candidate = base_name
    while True:
        if vendor.name not in candidate:
            candidate = f"{candidate}_{vendor.name}"
        elif vendor.has_version and f"-{vendor.version}" not in candidate:
            candidate = f"{candidate}-{vendor.version}"
        else:
            return names
        names.append(candidate)


def _load_candidate(
    root: Union[Path, Traversable], candidate: str
) -> Optional[Tuple[str, Dict[str, str]]]:
    """
    按注册的格式查找并解析候选资源

    Returns:
        (资源文件名, 条目) 或 None（资源不存在或全部无法解析）
    """
    names = [candidate]
    if candidate.lower() != candidate:
        names.append(candidate.lower())

    for extension, provider in get_formats():
        for name in names:
            filename = f"{name}{extension}"
            resource = root / filename
            if not resource.is_file():
                continue
            try:
                return filename, provider.parse(resource.read_text(encoding="utf-8"))
            except (OSError, ValueError, ET.ParseError) as e:
                logger.warning(f"查询资源 {filename} 解析失败，已跳过: {str(e)}")
    return None


def get_chain(base_name: str, vendor: Vendor, root: ResourceRoot) -> QueryChain:
    """QueryChain.get_chain 的函数形式"""
    return QueryChain.get_chain(base_name, vendor, root)


def resolve(node: QueryChain, identifier: str) -> str:
    """QueryChain.resolve 的函数形式"""
    return node.resolve(identifier)
