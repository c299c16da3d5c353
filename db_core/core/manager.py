"""
数据库连接与事务管理模块

DatabaseManager 是对外的门面：持有一个连接器，按调用方（owner）提供连接，
并管理显式开启的事务。owner 默认是当前线程标识，也可以显式传入，
例如 begin_transaction 返回的 TransactionHandle.owner。

每个 owner 的状态机：

    NONE --begin_transaction--> ACTIVE --end_transaction--> NONE

事务连接通过 Connector.open_connection 单独获取，其他 owner 不会拿到它。
ACTIVE 状态下 get_connection 返回事务连接本身，close_connection 对任何事务连接都不生效；
在 ACTIVE 状态再次 begin_transaction 不会嵌套，只记录警告并返回已有句柄。
"""

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Hashable, Iterator, List, Mapping, Optional, Union

from sqlalchemy import text
from sqlalchemy.engine import Connection, RootTransaction
from sqlalchemy.exc import SQLAlchemyError

from ..connectors import Connector, create_connector
from ..connectors.base import AUTOCOMMIT
from ..drivers.catalog import CatalogSource, DriverCatalog
from ..drivers.vendor import Driver, Vendor
from ..queries.batch import get_batch
from ..queries.chain import QueryChain, ResourceRoot
from ..utils.logging_utils import get_logger
from .exceptions import (
    ConfigError,
    DBCoreError,
    QueryError,
    ResourceNotFoundError,
)

logger = get_logger(__name__)

# 错误消息常量
NOT_CONNECTED_MSG = "数据库管理器尚未连接"
NO_QUERY_CHAIN_MSG = "数据库管理器没有可用的查询资源"


@dataclass
class TransactionHandle:
    """
    事务句柄

    只在 begin_transaction 与对应的 end_transaction 之间存在。

    Attributes:
        owner (Hashable): 事务所属的调用方
        connection (Connection): 事务独占的连接
        transaction (RootTransaction): SQLAlchemy 事务对象
        active (bool): 事务是否仍在进行
    """

    owner: Hashable
    connection: Connection
    transaction: RootTransaction
    active: bool = field(default=True)


class DatabaseManager:
    """
    数据库管理器

    Attributes:
        connector (Connector): 连接器
        queries (Optional[QueryChain]): 查询链，没有查询资源时为None

    Example:
        >>> drivers = DriverCatalog.read("drivers.json", "SQLite")
        >>> manager = DatabaseManager(drivers[0], queries_root="resources")
        >>> manager.connect({"path": "/data/app.db"})
        >>> with manager.transaction():
        ...     manager.execute("insert_user", {"name": "alice"})
        >>> manager.disconnect()
    """

    def __init__(
        self,
        driver: Union[Driver, Connector],
        queries_root: Optional[ResourceRoot] = None,
        base_name: Optional[str] = None,
    ) -> None:
        """
        初始化数据库管理器

        Args:
            driver: 驱动描述，或已创建但未配置的连接器
            queries_root: 查询资源所在目录或包资源
            base_name: 查询资源基础名称，默认使用驱动描述的 queries
        """
        self.connector = driver if isinstance(driver, Connector) else create_connector(driver)
        self.queries_root = queries_root
        self.queries: Optional[QueryChain] = None

        self._connected = False
        self._transactions: Dict[Hashable, TransactionHandle] = {}
        self._lock = threading.RLock()

        base_name = base_name or self.connector.driver.queries
        if base_name and queries_root is not None:
            try:
                self.queries = QueryChain.get_chain(base_name, self.vendor, queries_root)
            except ResourceNotFoundError as e:
                logger.warning(f"查询资源加载失败，query() 将不可用: {e.message}")

        logger.info(f"数据库管理器初始化成功: {self.vendor}")

    @classmethod
    def from_catalog(
        cls,
        source: CatalogSource,
        vendor_name: str,
        queries_root: Optional[ResourceRoot] = None,
        base_name: Optional[str] = None,
    ) -> "DatabaseManager":
        """
        从驱动目录中选择最新的可用驱动创建管理器

        Raises:
            ConfigError: 目录中没有该厂商的驱动时
        """
        drivers = DriverCatalog.read(source, vendor_name)
        if not drivers:
            raise ConfigError(
                f"驱动目录中没有厂商 '{vendor_name}' 的可用驱动",
                error_code="DRIVER_NOT_FOUND",
                config_file=str(source) if isinstance(source, (str, Path)) else None,
            )
        logger.info(f"为厂商 {vendor_name} 选择驱动: {drivers[0].implementation}")
        return cls(drivers[0], queries_root=queries_root, base_name=base_name)

    @property
    def vendor(self) -> Vendor:
        return self.connector.vendor

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self, settings: Mapping[str, Any]) -> None:
        """
        配置连接器，只能调用一次

        Raises:
            ConfigError: 已经连接或设置无效时
        """
        with self._lock:
            if self._connected:
                raise ConfigError(f"数据库管理器已连接: {self.vendor}", error_code="ALREADY_CONNECTED")
            try:
                self.connector.configure(settings)
            except DBCoreError as e:
                logger.error(f"连接数据库失败 [{self.vendor}]: {e.message}")
                raise
            self._connected = True
            logger.info(f"数据库已连接: {self.vendor}")

    def disconnect(self) -> None:
        """
        关闭连接器，未结束的事务全部回滚

        Raises:
            ConfigError: 尚未连接时
        """
        with self._lock:
            if not self._connected:
                raise ConfigError(NOT_CONNECTED_MSG, error_code="NOT_CONNECTED")

            for owner in list(self._transactions):
                logger.warning(f"断开连接时回滚未结束的事务: {owner}")
                self.end_transaction(commit=False, owner=owner)

            self.connector.shutdown()
            self._connected = False
            logger.info(f"数据库已断开: {self.vendor}")

    def get_connection(self, owner: Optional[Hashable] = None) -> Connection:
        """
        获取连接

        owner 有进行中的事务时返回事务连接，否则从连接器获取新的自动提交连接。

        Raises:
            ConnectionError: 连接器无法提供连接时
        """
        handle = self._transactions.get(self._owner(owner))
        if handle is not None:
            return handle.connection
        return self.connector.get_connection()

    def close_connection(self, connection: Connection, owner: Optional[Hashable] = None) -> None:
        """
        释放 get_connection 获取的连接

        任何进行中事务持有的连接都不会被关闭，它们由 end_transaction 负责关闭。
        """
        with self._lock:
            held_by = next(
                (h.owner for h in self._transactions.values() if h.connection is connection),
                None,
            )
        if held_by is not None:
            logger.debug(f"忽略对事务连接的关闭请求: {held_by} (请求方 {self._owner(owner)})")
            return
        self.connector.close_connection(connection)

    def begin_transaction(self, owner: Optional[Hashable] = None) -> TransactionHandle:
        """
        开启事务

        Returns:
            TransactionHandle: 新的事务句柄；已有进行中的事务时返回已有句柄
        """
        owner = self._owner(owner)
        existing = self._transactions.get(owner)
        if existing is not None:
            logger.warning(f"事务已在进行中，忽略重复开启: {owner}")
            return existing

        connection = self.connector.open_connection()
        try:
            if connection.in_transaction():
                # 自动提交模式下的 autobegin 标记，结束后才能切换隔离级别
                connection.rollback()
            connection.execution_options(isolation_level=connection.default_isolation_level)
            transaction = connection.begin()
        except SQLAlchemyError as e:
            logger.error(f"开启事务失败 [{self.vendor}]: {str(e)}")
            self.connector.close_connection(connection)
            raise QueryError(f"开启事务失败: {str(e)}", details={"vendor": str(self.vendor)})

        handle = TransactionHandle(owner, connection, transaction)
        with self._lock:
            self._transactions[owner] = handle
        logger.debug(f"事务已开启: {owner}")
        return handle

    def end_transaction(self, commit: bool = True, owner: Optional[Hashable] = None) -> None:
        """
        结束事务：提交或回滚，恢复自动提交并关闭连接

        owner 没有进行中的事务时只记录警告。

        Raises:
            QueryError: 提交失败时（连接仍会被关闭）
        """
        owner = self._owner(owner)
        with self._lock:
            handle = self._transactions.pop(owner, None)
        if handle is None:
            logger.warning(f"没有进行中的事务，忽略结束请求: {owner}")
            return

        handle.active = False
        connection = handle.connection
        try:
            if commit:
                handle.transaction.commit()
            else:
                handle.transaction.rollback()
            logger.debug(f"事务已{'提交' if commit else '回滚'}: {owner}")
        except SQLAlchemyError as e:
            logger.error(f"结束事务失败 [{self.vendor}]: {str(e)}")
            raise QueryError(f"结束事务失败: {str(e)}", details={"vendor": str(self.vendor)})
        finally:
            try:
                connection.execution_options(isolation_level=AUTOCOMMIT)
            except SQLAlchemyError as e:
                logger.warning(f"恢复自动提交失败: {str(e)}")
            self.connector.close_connection(connection)

    def in_transaction(self, owner: Optional[Hashable] = None) -> bool:
        return self._owner(owner) in self._transactions

    @contextmanager
    def transaction(self, owner: Optional[Hashable] = None) -> Iterator[Connection]:
        """
        事务上下文管理器：正常退出时提交，异常时回滚并重新抛出

        已有进行中的事务时直接复用，由外层负责结束。
        """
        owner = self._owner(owner)
        if self.in_transaction(owner):
            yield self._transactions[owner].connection
            return

        handle = self.begin_transaction(owner)
        try:
            yield handle.connection
        except BaseException:
            self.end_transaction(commit=False, owner=owner)
            raise
        self.end_transaction(commit=True, owner=owner)

    def query(self, identifier: str) -> str:
        """
        解析查询标识并转换为当前厂商的标识符风格

        Raises:
            ConfigError: 没有加载查询资源时
            QueryNotFoundError: 查询链中不存在该标识时
        """
        if self.queries is None:
            raise ConfigError(NO_QUERY_CHAIN_MSG, error_code="NO_QUERY_CHAIN")
        return self.connector.statement_processor(self.queries.resolve(identifier))

    def execute(
        self,
        identifier: str,
        params: Optional[Mapping[str, Any]] = None,
        owner: Optional[Hashable] = None,
    ) -> Union[List[Dict[str, Any]], int]:
        """
        执行查询资源中的语句

        Args:
            identifier: 查询标识
            params: 命名绑定参数
            owner: 调用方，默认当前线程

        Returns:
            返回行的语句得到字典列表，其余语句得到影响行数
        """
        statement = self.query(identifier)
        connection = self.get_connection(owner)
        try:
            result = connection.execute(text(statement), dict(params or {}))
            if result.returns_rows:
                return [dict(row) for row in result.mappings()]
            return result.rowcount
        except SQLAlchemyError as e:
            logger.error(f"执行查询 '{identifier}' 失败 [{self.vendor}]: {str(e)}")
            raise QueryError(
                f"执行查询 '{identifier}' 失败: {str(e)}",
                query=statement,
                parameters=dict(params or {}),
                details={"identifier": identifier},
            )
        finally:
            self.close_connection(connection, owner)

    def execute_batch(self, base_name: str, owner: Optional[Hashable] = None) -> int:
        """
        在一个事务中执行批处理文件中的全部语句

        Returns:
            int: 执行的语句数量
        """
        if self.queries_root is None:
            raise ConfigError(NO_QUERY_CHAIN_MSG, error_code="NO_QUERY_ROOT")

        statements = get_batch(base_name, self.vendor, self.queries_root)
        processor = self.connector.statement_processor
        with self.transaction(owner) as connection:
            for statement in statements:
                try:
                    connection.execute(text(processor(statement)))
                except SQLAlchemyError as e:
                    logger.error(f"批处理 '{base_name}' 执行失败 [{self.vendor}]: {str(e)}")
                    raise QueryError(
                        f"批处理 '{base_name}' 执行失败: {str(e)}",
                        query=statement,
                        details={"base_name": base_name},
                    )
        logger.info(f"批处理 '{base_name}' 执行完成，共 {len(statements)} 条语句")
        return len(statements)

    @staticmethod
    def _owner(owner: Optional[Hashable]) -> Hashable:
        return threading.get_ident() if owner is None else owner

    def __enter__(self) -> "DatabaseManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._connected:
            self.disconnect()
