"""
连接器基础模块

连接器负责把一个驱动描述和一组连接设置变成可用的 SQLAlchemy 连接。
生命周期：未配置 -> configure(settings) -> 就绪 -> shutdown() -> 终止。
关闭后的连接器不能再次配置，需要创建新实例。

连接设置是自由的键值映射：
- 驱动模板中引用的占位符键（例如 host、port、database、path）
- user / password：URL中没有用户信息时写入URL
- 连接池参数：pool_size、max_overflow、pool_timeout、pool_recycle、pool_pre_ping 等
- 其余键原样传给驱动（connect_args）

连接器交给调用方的连接处于自动提交模式，事务由 DatabaseManager 显式开启。
"""

import re
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Connection, Engine, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from ..core.exceptions import ConfigError, ConnectionError, ConnectorStateError, DriverError
from ..drivers.vendor import Driver, DriverKind, Vendor, dbapi_module
from ..queries import processors
from ..queries.processors import StatementProcessor
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)

AUTOCOMMIT = "AUTOCOMMIT"

# 连接器自身识别的设置键，不会传给驱动
RESERVED_SETTINGS = frozenset(
    {"host", "port", "database", "user", "password", "path", "encoding"}
)

# 连接池/引擎参数及其类型转换
TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_VALUES


ENGINE_OPTION_TYPES: Dict[str, Callable[[Any], Any]] = {
    "pool_size": int,
    "max_overflow": int,
    "pool_timeout": int,
    "pool_recycle": int,
    "pool_pre_ping": _to_bool,
    "query_cache_size": int,
    "echo": _to_bool,
}


class Connector(ABC):
    """
    连接器抽象基类

    子类决定引擎的连接池策略以及 get_connection 的获取方式。

    Attributes:
        driver (Driver): 驱动描述
        remote (bool): 是否为网络数据库
        DEFAULT_SETTINGS (Dict[str, str]): 厂商默认设置，用户设置优先
        REQUIRED_SETTINGS (Tuple[str, ...]): 必须提供的设置键
        ENGINE_OPTIONS (Tuple[str, ...]): 本连接器传给 create_engine 的参数
    """

    remote: bool = False

    DEFAULT_SETTINGS: Dict[str, str] = {}
    REQUIRED_SETTINGS: Tuple[str, ...] = ()
    ENGINE_OPTIONS: Tuple[str, ...] = (
        "pool_recycle",
        "pool_pre_ping",
        "query_cache_size",
        "echo",
    )

    def __init__(self, driver: Driver) -> None:
        self.driver = driver
        self._engine: Optional[Engine] = None
        self._target: Optional[str] = None
        self._configured = False
        self._shutdown = False
        self._lock = threading.RLock()

    @property
    def vendor(self) -> Vendor:
        return self.driver.vendor

    @property
    def is_configured(self) -> bool:
        return self._configured

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    @property
    def target(self) -> Optional[str]:
        """已屏蔽密码的连接目标描述"""
        return self._target

    @property
    def statement_processor(self) -> StatementProcessor:
        return processors.IDENTITY

    def configure(self, settings: Mapping[str, Any]) -> None:
        """
        使用连接设置创建引擎

        Args:
            settings: 连接设置

        Raises:
            ConnectorStateError: 重复配置或已关闭时
            ConfigError: 缺少必需设置或设置无效时
            DriverError: 驱动实现无法加载时
        """
        with self._lock:
            if self._shutdown:
                raise ConnectorStateError(f"连接器已关闭，不能再次配置: {self.vendor}")
            if self._configured:
                raise ConnectorStateError(f"连接器已配置: {self.vendor}")

            merged = {**self.DEFAULT_SETTINGS, **settings}
            missing = [key for key in self.REQUIRED_SETTINGS if not merged.get(key)]
            if missing:
                raise ConfigError(
                    f"{self.vendor} 缺少必需的连接设置: {', '.join(missing)}",
                    error_code="MISSING_SETTING",
                    config_key=missing[0],
                )

            self._engine = self._create_engine(merged)
            self._configured = True
            logger.info(f"连接器配置完成: {self.vendor} -> {self._target}")

    def shutdown(self) -> None:
        """释放引擎及其连接池，重复调用无副作用"""
        with self._lock:
            if self._shutdown:
                return
            self._shutdown = True
            self._release()
            if self._engine is not None:
                self._engine.dispose()
                self._engine = None
            logger.info(f"连接器已关闭: {self.vendor}")

    def get_connection(self) -> Connection:
        """
        获取一个自动提交模式的连接

        Raises:
            ConnectionError: 连接器未配置、已关闭或获取连接失败时
        """
        return self._checkout(self._acquire)

    def open_connection(self) -> Connection:
        """
        获取一个不与其他调用方共享的自动提交连接

        事务使用这里得到的连接，调用方负责通过 close_connection 关闭。

        Raises:
            ConnectionError: 连接器未配置、已关闭或获取连接失败时
        """
        return self._checkout(self._acquire_dedicated)

    def _checkout(self, acquire: Callable[[Engine], Connection]) -> Connection:
        engine = self._require_engine()
        try:
            return acquire(engine)
        except SQLAlchemyError as e:
            logger.error(f"获取数据库连接失败 [{self.vendor} @ {self._target}]: {str(e)}")
            raise ConnectionError(
                f"获取数据库连接失败: {str(e)}",
                error_code="CONNECTION_FAILED",
                vendor=str(self.vendor),
                target=self._target,
            )

    def close_connection(self, connection: Connection) -> None:
        """
        关闭连接，未完成的事务会先回滚

        关闭失败只记录日志，不向调用方抛出。
        """
        try:
            if connection.in_transaction():
                connection.rollback()
            connection.close()
        except SQLAlchemyError as e:
            logger.warning(f"关闭数据库连接失败 [{self.vendor}]: {str(e)}")

    @abstractmethod
    def _acquire(self, engine: Engine) -> Connection:
        """从引擎获取连接"""

    def _acquire_dedicated(self, engine: Engine) -> Connection:
        """获取独占连接，默认与 _acquire 相同"""
        return self._acquire(engine)

    def _release(self) -> None:
        """关闭前释放连接器持有的连接"""

    def _pool_options(self) -> Dict[str, Any]:
        """连接池类型等固定的引擎参数"""
        return {}

    def _connect_defaults(self, url: URL) -> Dict[str, Any]:
        """DBAPI驱动的默认连接参数，用户设置优先"""
        return {}

    def _default_url(self, settings: Mapping[str, Any]) -> Optional[str]:
        """驱动没有URL模板时使用的URL"""
        return None

    def _connect_args(self, settings: Mapping[str, Any]) -> Dict[str, Any]:
        """
        计算传给驱动的额外参数

        连接器识别的键、引擎参数和模板占位符引用的键都不会传给驱动。
        """
        consumed = RESERVED_SETTINGS | set(ENGINE_OPTION_TYPES) | self.driver.referenced_keys()
        return {key: value for key, value in settings.items() if key not in consumed}

    def _engine_options(self, settings: Mapping[str, Any]) -> Dict[str, Any]:
        options: Dict[str, Any] = {}
        for key, convert in ENGINE_OPTION_TYPES.items():
            if key not in settings:
                continue
            if key not in self.ENGINE_OPTIONS:
                logger.debug(f"{self.vendor} 连接器忽略设置: {key}")
                continue
            try:
                options[key] = convert(settings[key])
            except (TypeError, ValueError):
                raise ConfigError(
                    f"连接设置 '{key}' 的值无效: {settings[key]!r}",
                    error_code="INVALID_SETTING",
                    config_key=key,
                )
        return options

    def _create_engine(self, settings: Dict[str, Any]) -> Engine:
        options = {
            **self._engine_options(settings),
            **self._pool_options(),
            "isolation_level": AUTOCOMMIT,
        }
        connect_args = self._connect_args(settings)
        implementation = self.driver.load()

        try:
            if self.driver.kind is DriverKind.DRIVER:
                url = self._resolve_url(settings)
                self._target = url.render_as_string(hide_password=True)
                connect_args = {
                    **self._connect_defaults(url),
                    **self.driver.resolve_properties(settings),
                    **connect_args,
                }
                return create_engine(
                    url, module=implementation, connect_args=connect_args, **options
                )

            properties = {**self.driver.resolve_properties(settings), **connect_args}
            module = dbapi_module(self.driver.implementation)
            if module is not None:
                # 方言使用工厂所属的DBAPI模块，不导入方言默认的驱动
                options["module"] = module
            self._target = f"{self.driver.get_dialect()}://{_mask_properties(properties)}"
            return create_engine(
                f"{self.driver.get_dialect()}://",
                creator=lambda: implementation(**properties),
                **options,
            )
        except (ArgumentError, TypeError) as e:
            raise ConfigError(f"{self.vendor} 引擎参数无效: {str(e)}", error_code="INVALID_ENGINE")
        except ImportError as e:
            raise DriverError(
                f"{self.vendor} 的SQLAlchemy方言不可用: {str(e)}",
                implementation=self.driver.implementation,
            )

    def _resolve_url(self, settings: Mapping[str, Any]) -> URL:
        raw = self.driver.resolve_url(settings) or self._default_url(settings)
        if not raw:
            raise ConfigError(f"{self.vendor} 没有可用的连接URL", error_code="MISSING_URL")
        try:
            url = make_url(raw)
        except ArgumentError as e:
            raise ConfigError(
                f"无效的连接URL {_mask_sensitive_info(raw)}: {str(e)}",
                error_code="INVALID_URL",
            )

        if settings.get("user") and url.username is None:
            url = url.set(username=str(settings["user"]))
        if settings.get("password") and url.password is None:
            url = url.set(password=str(settings["password"]))
        return url

    def _require_engine(self) -> Engine:
        if self._shutdown:
            raise ConnectionError(
                "连接器已关闭",
                error_code="CONNECTOR_SHUTDOWN",
                vendor=str(self.vendor),
                target=self._target,
            )
        if not self._configured or self._engine is None:
            raise ConnectionError(
                "连接器尚未配置",
                error_code="CONNECTOR_NOT_CONFIGURED",
                vendor=str(self.vendor),
            )
        return self._engine

    def __repr__(self) -> str:
        state = "shutdown" if self._shutdown else "ready" if self._configured else "new"
        return f"{self.__class__.__name__}({self.vendor}, {state})"


def _mask_sensitive_info(url: str) -> str:
    """屏蔽URL中的密码"""
    return re.sub(r":([^:@/]+)@", ":***@", url)


def _mask_properties(properties: Mapping[str, Any]) -> str:
    return ", ".join(
        f"{key}=***" if "password" in key.lower() else f"{key}={value}"
        for key, value in properties.items()
    )
