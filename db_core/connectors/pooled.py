"""
连接池型数据库连接器

网络数据库的连接由 SQLAlchemy QueuePool 管理，连接器在配置时创建一次连接池，
之后每次 get_connection 都向连接池请求连接，并发控制完全交给连接池。
"""

from typing import Any, Dict, Mapping

from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.pool import QueuePool

from ..queries import processors
from ..queries.processors import StatementProcessor
from .base import Connector


class PooledConnector(Connector):
    """
    通用连接池连接器

    Attributes:
        POOL_DEFAULTS (Dict[str, Any]): 默认连接池参数，连接设置中的同名键优先
    """

    remote = True

    ENGINE_OPTIONS = Connector.ENGINE_OPTIONS + ("pool_size", "max_overflow", "pool_timeout")

    POOL_DEFAULTS: Dict[str, Any] = {
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "pool_size": 10,
        "max_overflow": 20,
    }

    def _engine_options(self, settings: Mapping[str, Any]) -> Dict[str, Any]:
        return {**self.POOL_DEFAULTS, **super()._engine_options(settings)}

    def _pool_options(self) -> Dict[str, Any]:
        return {"poolclass": QueuePool}

    def _acquire(self, engine: Engine) -> Connection:
        return engine.connect()


class MySQLConnector(PooledConnector):
    """
    MySQL 连接器

    默认连接本机3306端口，并扩大已编译语句缓存。
    """

    DEFAULT_SETTINGS = {"host": "127.0.0.1", "port": "3306"}
    REQUIRED_SETTINGS = ("database",)

    POOL_DEFAULTS = {**PooledConnector.POOL_DEFAULTS, "query_cache_size": 1200}

    @property
    def statement_processor(self) -> StatementProcessor:
        return processors.BACKTICK

    def _connect_defaults(self, url: URL) -> Dict[str, Any]:
        return {"charset": "utf8mb4"}


class MariaDBConnector(MySQLConnector):
    """MariaDB 连接器，与 MySQL 使用相同的默认设置"""


class PostgreSQLConnector(PooledConnector):
    """PostgreSQL 连接器，只接受双引号标识符"""

    DEFAULT_SETTINGS = {"host": "127.0.0.1", "port": "5432"}
    REQUIRED_SETTINGS = ("database",)

    @property
    def statement_processor(self) -> StatementProcessor:
        return processors.QUOTE
