"""
查询资源模块包

- QueryChain: 按厂商和版本层叠覆盖的查询文本解析
- get_batch / read_batch: 批处理SQL文件读取
- 语句处理器: 标识符引用风格转换
- register_format: 注册额外的查询资源格式
"""

from .batch import get_batch, read_batch
from .chain import QueryChain, candidate_names, get_chain, resolve
from .formats import EntriesProvider, register_format
from .processors import BACKTICK, IDENTITY, QUOTE, StatementProcessor, compose

__all__ = [
    "QueryChain",
    "candidate_names",
    "get_chain",
    "resolve",
    "get_batch",
    "read_batch",
    "EntriesProvider",
    "register_format",
    "StatementProcessor",
    "IDENTITY",
    "BACKTICK",
    "QUOTE",
    "compose",
]
