"""
批处理SQL文件读取模块

批处理文件是以 ";" 分隔的多条SQL语句，"--" 之后的内容视为注释。
查找顺序与查询链相反，返回最具体的那一个文件：

    schema_MySQL-8.sql  ->  schema_MySQL.sql  ->  schema.sql
"""

import re
from pathlib import Path
from typing import List, Optional, Union

from ..core.exceptions import ResourceNotFoundError
from ..drivers.vendor import Vendor
from ..utils.logging_utils import get_logger
from .chain import ResourceRoot, Traversable, candidate_names

logger = get_logger(__name__)

BATCH_EXTENSION = ".sql"

_WHITESPACE = re.compile(r"\s+")


def read_batch(text: str) -> List[str]:
    """
    拆分批处理文本为单条语句

    Args:
        text: 批处理文件内容

    Returns:
        List[str]: 去掉注释、压缩空白后的非空语句列表

    Example:
        >>> read_batch("-- schema\\nCREATE TABLE a (id INT);\\nDROP TABLE b; -- old")
        ['CREATE TABLE a (id INT)', 'DROP TABLE b']
    """
    statements: List[str] = []
    parts: List[str] = []

    for line in text.splitlines():
        index = line.find("--")
        if index >= 0:
            line = line[:index]

        while ";" in line:
            head, _, line = line.partition(";")
            parts.append(head)
            statement = _WHITESPACE.sub(" ", " ".join(parts)).strip()
            if statement:
                statements.append(statement)
            parts = []

        parts.append(line)

    trailing = _WHITESPACE.sub(" ", " ".join(parts)).strip()
    if trailing:
        logger.debug(f"批处理末尾存在未以 ';' 结束的语句: {trailing[:50]}")
        statements.append(trailing)
    return statements


def get_batch(base_name: str, vendor: Optional[Vendor], root: ResourceRoot) -> List[str]:
    """
    读取与厂商最匹配的批处理文件

    Args:
        base_name: 批处理文件基础名称
        vendor: 目标厂商，为None时只查找基础文件
        root: 文件所在目录或包资源

    Raises:
        ResourceNotFoundError: 没有任何候选文件存在时
    """
    location: Union[Path, Traversable] = Path(root) if isinstance(root, str) else root
    names = candidate_names(base_name, vendor) if vendor else [base_name]

    for name in reversed(names):
        for filename in dict.fromkeys((name + BATCH_EXTENSION, name.lower() + BATCH_EXTENSION)):
            resource = location / filename
            if resource.is_file():
                statements = read_batch(resource.read_text(encoding="utf-8"))
                logger.info(f"已读取批处理文件 {filename}，共 {len(statements)} 条语句")
                return statements

    raise ResourceNotFoundError(
        f"基础名称 '{base_name}' 没有可用的批处理文件 (厂商: {vendor})",
        error_code="BATCH_RESOURCE_NOT_FOUND",
        base_name=base_name,
        details={"root": str(location)},
    )
