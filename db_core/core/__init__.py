"""
核心模块

- SettingsStore: 连接设置的持久化与敏感字段加密
- CryptoManager: Fernet 对称加密
- 异常体系: 配置、资源解析、连接等错误分类

DatabaseManager 位于 db_core.core.manager，依赖连接器和查询模块，
因此不在这里导入。
"""

from .config import SettingsStore
from .crypto import CryptoManager
from .exceptions import (
    CatalogError,
    ConfigError,
    ConnectionError,
    ConnectorStateError,
    CryptoError,
    DatabaseError,
    DBCoreError,
    DriverError,
    QueryError,
    QueryNotFoundError,
    ResourceNotFoundError,
)

__all__ = [
    # ==================== 配置管理模块 ====================
    "SettingsStore",
    # ==================== 加密管理模块 ====================
    "CryptoManager",
    # ==================== 异常处理体系 ====================
    "DBCoreError",
    "ConfigError",
    "CatalogError",
    "ConnectorStateError",
    "CryptoError",
    "ResourceNotFoundError",
    "QueryNotFoundError",
    "DatabaseError",
    "ConnectionError",
    "DriverError",
    "QueryError",
]
