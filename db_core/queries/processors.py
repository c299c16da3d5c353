"""
语句处理器模块

查询资源通常以一种标识符引用风格书写，处理器在执行前把它转换为目标厂商的风格：
MySQL/MariaDB/SQLite 接受反引号，PostgreSQL 只接受双引号。
"""

from typing import Callable

StatementProcessor = Callable[[str], str]


def identity(statement: str) -> str:
    return statement


def backtick(statement: str) -> str:
    """双引号标识符转换为反引号"""
    return statement.replace('"', "`")


def quote(statement: str) -> str:
    """反引号标识符转换为双引号"""
    return statement.replace("`", '"')


def compose(*processors: StatementProcessor) -> StatementProcessor:
    """按给定顺序依次应用多个处理器"""

    def _process(statement: str) -> str:
        for processor in processors:
            statement = processor(statement)
        return statement

    return _process


IDENTITY: StatementProcessor = identity
BACKTICK: StatementProcessor = backtick
QUOTE: StatementProcessor = quote
