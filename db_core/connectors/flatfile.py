"""
文件型数据库连接器

文件型数据库通常只有一个写入者，连接池没有收益：连接器持有一个延迟创建的连接，
只要它仍然打开就重复返回同一个实例；连接关闭或失效后透明地重新创建。
事务通过 open_connection 取得单独的连接，不会与共享连接混用。
"""

from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.pool import NullPool

from ..core.exceptions import ConfigError
from ..queries import processors
from ..queries.processors import StatementProcessor
from ..utils.logging_utils import get_logger
from .base import Connector

logger = get_logger(__name__)


class FlatFileConnector(Connector):
    """
    文件型连接器

    引擎使用 NullPool，物理连接的生命周期完全由连接器控制。
    """

    remote = False

    def __init__(self, driver) -> None:
        super().__init__(driver)
        self._connection: Optional[Connection] = None

    def _pool_options(self) -> Dict[str, Any]:
        return {"poolclass": NullPool}

    def _acquire(self, engine: Engine) -> Connection:
        with self._lock:
            connection = self._connection
            if connection is None or connection.closed or connection.invalidated:
                if connection is not None:
                    logger.debug(f"{self.vendor} 连接已关闭，重新创建")
                connection = engine.connect()
                self._connection = connection
            return connection

    def _acquire_dedicated(self, engine: Engine) -> Connection:
        # 不进入缓存，共享连接的使用者看不到这个连接
        return engine.connect()

    def _release(self) -> None:
        if self._connection is not None and not self._connection.closed:
            self.close_connection(self._connection)
        self._connection = None


class SQLiteConnector(FlatFileConnector):
    """
    SQLite 连接器

    驱动没有URL模板时使用 sqlite:///{path}，此时 path 为必需设置。
    """

    @property
    def statement_processor(self) -> StatementProcessor:
        return processors.BACKTICK

    def _default_url(self, settings: Mapping[str, Any]) -> Optional[str]:
        path = settings.get("path")
        if not path:
            raise ConfigError(
                "SQLite 缺少数据库文件路径设置: path",
                error_code="MISSING_SETTING",
                config_key="path",
            )
        return f"sqlite:///{Path(path)}"

    def _connect_defaults(self, url: URL) -> Dict[str, Any]:
        # 复用的文件连接可能被不同线程取得
        if url.database and url.database != ":memory:":
            return {"check_same_thread": False}
        return {}
