"""
db-core - 多厂商数据库访问支持层
================================

在多个SQL厂商之间提供统一的抽象：

- 驱动目录: 从描述文件加载驱动，并按厂商选择最新的可用驱动
- 查询链: 按厂商和版本层叠覆盖的SQL文本解析
- 连接器与 DatabaseManager: 连接获取与显式事务管理

使用示例:
    >>> from db_core import DatabaseManager
    >>> manager = DatabaseManager.from_catalog("drivers.json", "MySQL", queries_root="resources")
    >>> manager.connect({"database": "app", "user": "root", "password": "secret"})
    >>> rows = manager.execute("select_users")
"""

__version__ = "0.1.0"

from .core.exceptions import (
    ConfigError,
    ConnectionError,
    DBCoreError,
    QueryNotFoundError,
    ResourceNotFoundError,
)
from .core.manager import DatabaseManager, TransactionHandle
from .drivers import Driver, DriverCatalog, DriverKind, Vendor
from .queries import QueryChain, get_batch

__all__ = [
    "DatabaseManager",
    "TransactionHandle",
    "Vendor",
    "Driver",
    "DriverKind",
    "DriverCatalog",
    "QueryChain",
    "get_batch",
    "DBCoreError",
    "ConfigError",
    "ConnectionError",
    "ResourceNotFoundError",
    "QueryNotFoundError",
]


def get_version() -> str:
    return __version__
