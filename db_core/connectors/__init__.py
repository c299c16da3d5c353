"""
连接器模块包

按厂商名称（不区分大小写）选择连接器实现，未注册的厂商使用通用连接池连接器。
"""

from typing import Dict, Type

from ..drivers.vendor import Driver
from ..utils.logging_utils import get_logger
from .base import Connector
from .flatfile import FlatFileConnector, SQLiteConnector
from .pooled import MariaDBConnector, MySQLConnector, PooledConnector, PostgreSQLConnector

logger = get_logger(__name__)

_REGISTRY: Dict[str, Type[Connector]] = {
    "sqlite": SQLiteConnector,
    "mysql": MySQLConnector,
    "mariadb": MariaDBConnector,
    "postgresql": PostgreSQLConnector,
}


def register_connector(vendor_name: str, connector_class: Type[Connector]) -> None:
    """为厂商注册连接器实现，已存在的注册会被覆盖"""
    _REGISTRY[vendor_name.lower()] = connector_class
    logger.debug(f"已注册连接器: {vendor_name} -> {connector_class.__name__}")


def create_connector(driver: Driver) -> Connector:
    """
    为驱动创建未配置的连接器

    Args:
        driver: 驱动描述

    Returns:
        Connector: 与厂商对应的连接器实例
    """
    connector_class = _REGISTRY.get(driver.vendor.name.lower(), PooledConnector)
    logger.debug(f"为 {driver.vendor} 创建连接器: {connector_class.__name__}")
    return connector_class(driver)


__all__ = [
    "Connector",
    "FlatFileConnector",
    "SQLiteConnector",
    "PooledConnector",
    "MySQLConnector",
    "MariaDBConnector",
    "PostgreSQLConnector",
    "create_connector",
    "register_connector",
]
