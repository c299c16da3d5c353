"""
连接器测试
"""

import sqlite3
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import NullPool, QueuePool

from db_core.connectors import (
    MariaDBConnector,
    MySQLConnector,
    PooledConnector,
    PostgreSQLConnector,
    SQLiteConnector,
    create_connector,
    register_connector,
)
from db_core.core.exceptions import (
    ConfigError,
    ConnectionError,
    ConnectorStateError,
    DriverError,
)
from db_core.drivers.vendor import Driver, DriverKind, Vendor
from db_core.queries import processors

SQLITE_DRIVER = Driver(Vendor("SQLite"), "sqlite3", url="sqlite:///{path}")


class TestRegistry:
    """连接器注册表测试类"""

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("SQLite", SQLiteConnector),
            ("MySQL", MySQLConnector),
            ("mariadb", MariaDBConnector),
            ("PostgreSQL", PostgreSQLConnector),
            ("Oracle", PooledConnector),
        ],
    )
    def test_create_connector(self, name, expected):
        """测试按厂商名称选择连接器"""
        connector = create_connector(Driver(Vendor(name), "sqlite3", url="sqlite://"))

        assert type(connector) is expected
        assert not connector.is_configured

    def test_register_connector(self):
        """测试注册自定义连接器"""

        class H2Connector(SQLiteConnector):
            pass

        register_connector("H2", H2Connector)

        assert type(create_connector(Driver(Vendor("h2"), "sqlite3"))) is H2Connector

    def test_statement_processors(self):
        """测试各厂商的语句处理器"""
        driver = Driver(Vendor("x"), "sqlite3")
        assert SQLiteConnector(driver).statement_processor is processors.BACKTICK
        assert MySQLConnector(driver).statement_processor is processors.BACKTICK
        assert PostgreSQLConnector(driver).statement_processor is processors.QUOTE
        assert PooledConnector(driver).statement_processor is processors.IDENTITY

    def test_remote_flag(self):
        """测试网络数据库标记"""
        driver = Driver(Vendor("x"), "sqlite3")
        assert not SQLiteConnector(driver).remote
        assert PooledConnector(driver).remote


class TestLifecycle:
    """连接器生命周期测试类"""

    def setup_method(self):
        """测试方法 setup"""
        self.connector = SQLiteConnector(SQLITE_DRIVER)

    def teardown_method(self):
        """测试方法 teardown"""
        self.connector.shutdown()

    def test_get_connection_before_configure(self):
        """测试未配置时获取连接"""
        with pytest.raises(ConnectionError) as exc_info:
            self.connector.get_connection()
        assert exc_info.value.error_code == "CONNECTOR_NOT_CONFIGURED"

    def test_configure_twice(self, tmp_path):
        """测试重复配置"""
        self.connector.configure({"path": str(tmp_path / "a.db")})

        with pytest.raises(ConnectorStateError):
            self.connector.configure({"path": str(tmp_path / "b.db")})

    def test_shutdown_is_final(self, tmp_path):
        """测试关闭后不能获取连接也不能再次配置"""
        self.connector.configure({"path": str(tmp_path / "a.db")})
        self.connector.shutdown()

        with pytest.raises(ConnectionError) as exc_info:
            self.connector.get_connection()
        assert exc_info.value.error_code == "CONNECTOR_SHUTDOWN"

        with pytest.raises(ConnectorStateError):
            self.connector.configure({"path": str(tmp_path / "a.db")})

    def test_shutdown_idempotent(self, tmp_path):
        """测试重复关闭"""
        self.connector.configure({"path": str(tmp_path / "a.db")})

        self.connector.shutdown()
        self.connector.shutdown()

        assert self.connector.is_shutdown

    def test_shutdown_unconfigured(self):
        """测试关闭未配置的连接器"""
        self.connector.shutdown()
        assert self.connector.is_shutdown


class TestFlatFileConnector:
    """文件型连接器测试类"""

    def setup_method(self):
        """测试方法 setup"""
        self.connector = SQLiteConnector(SQLITE_DRIVER)

    def teardown_method(self):
        """测试方法 teardown"""
        self.connector.shutdown()

    def test_reuses_open_connection(self, tmp_path):
        """测试连接打开时重复返回同一实例"""
        self.connector.configure({"path": str(tmp_path / "flat.db")})

        first = self.connector.get_connection()
        second = self.connector.get_connection()

        assert first is second
        assert first.execute(text("SELECT 1")).scalar() == 1

    def test_recreates_closed_connection(self, tmp_path):
        """测试连接关闭后重新创建"""
        self.connector.configure({"path": str(tmp_path / "flat.db")})
        first = self.connector.get_connection()

        self.connector.close_connection(first)
        second = self.connector.get_connection()

        assert first.closed
        assert second is not first
        assert not second.closed

    def test_autocommit(self, tmp_path):
        """测试连接处于自动提交模式"""
        path = tmp_path / "flat.db"
        self.connector.configure({"path": str(path)})
        connection = self.connector.get_connection()

        connection.execute(text("CREATE TABLE t (id INTEGER)"))
        connection.execute(text("INSERT INTO t VALUES (1)"))

        with sqlite3.connect(path) as other:
            assert other.execute("SELECT COUNT(*) FROM t").fetchone()[0] == 1

    def test_null_pool(self, tmp_path):
        """测试文件型连接器不使用连接池"""
        self.connector.configure({"path": str(tmp_path / "flat.db"), "pool_size": "5"})

        assert isinstance(self.connector._engine.pool, NullPool)

    def test_default_url_from_path(self, tmp_path):
        """测试驱动没有URL模板时使用 path"""
        connector = SQLiteConnector(Driver(Vendor("SQLite"), "sqlite3"))
        connector.configure({"path": str(tmp_path / "default.db")})
        try:
            assert connector.get_connection().execute(text("SELECT 2")).scalar() == 2
            assert connector.target.endswith("default.db")
        finally:
            connector.shutdown()

    def test_default_url_requires_path(self):
        """测试缺少 path 设置"""
        connector = SQLiteConnector(Driver(Vendor("SQLite"), "sqlite3"))

        with pytest.raises(ConfigError) as exc_info:
            connector.configure({})

        assert exc_info.value.config_key == "path"
        assert not connector.is_configured

    def test_data_source_kind(self, tmp_path):
        """测试连接工厂类驱动"""
        driver = Driver(
            Vendor("SQLite"),
            "sqlite3:connect",
            kind=DriverKind.DATA_SOURCE,
            properties={"database": "{path}"},
        )
        connector = SQLiteConnector(driver)
        connector.configure({"path": str(tmp_path / "ds.db"), "timeout": 3})
        try:
            connection = connector.get_connection()
            assert connection.execute(text("SELECT 3")).scalar() == 3
            assert "database=" in connector.target
        finally:
            connector.shutdown()

    def test_unloadable_driver(self, tmp_path):
        """测试驱动实现无法加载"""
        connector = SQLiteConnector(Driver(Vendor("SQLite"), "not_installed_driver"))

        with pytest.raises(DriverError):
            connector.configure({"path": str(tmp_path / "a.db")})
        assert not connector.is_configured

    def test_acquisition_failure(self, tmp_path):
        """测试获取连接失败时抛出连接错误"""
        self.connector.configure({"path": str(tmp_path / "missing" / "dir" / "a.db")})

        with pytest.raises(ConnectionError) as exc_info:
            self.connector.get_connection()

        assert exc_info.value.error_code == "CONNECTION_FAILED"
        assert exc_info.value.details["target"].endswith("a.db")


class TestPooledConnector:
    """连接池连接器测试类"""

    def setup_method(self):
        """测试方法 setup"""
        self.connector = PooledConnector(SQLITE_DRIVER)

    def teardown_method(self):
        """测试方法 teardown"""
        self.connector.shutdown()

    def test_queue_pool_with_settings(self, tmp_path):
        """测试连接池参数来自设置"""
        self.connector.configure(
            {"path": str(tmp_path / "pool.db"), "pool_size": "3", "max_overflow": "1"}
        )

        pool = self.connector._engine.pool
        assert isinstance(pool, QueuePool)
        assert pool.size() == 3

    def test_distinct_connections(self, tmp_path):
        """测试每次都向连接池请求新连接"""
        self.connector.configure({"path": str(tmp_path / "pool.db")})

        first = self.connector.get_connection()
        second = self.connector.get_connection()

        assert first is not second
        self.connector.close_connection(first)
        self.connector.close_connection(second)

    def test_invalid_pool_setting(self, tmp_path):
        """测试无效的连接池参数"""
        with pytest.raises(ConfigError) as exc_info:
            self.connector.configure({"path": str(tmp_path / "pool.db"), "pool_size": "many"})

        assert exc_info.value.config_key == "pool_size"

    def test_unknown_settings_passed_to_driver(self, tmp_path):
        """测试未识别的设置原样传给驱动"""
        with patch("db_core.connectors.base.create_engine") as create_engine:
            self.connector.configure(
                {"path": str(tmp_path / "pool.db"), "timeout": "7", "user": "u"}
            )

        _, kwargs = create_engine.call_args
        assert kwargs["connect_args"] == {"timeout": "7"}
        assert kwargs["isolation_level"] == "AUTOCOMMIT"
        assert kwargs["pool_size"] == 10

    def test_close_connection_rolls_back(self):
        """测试关闭连接前回滚未完成的事务"""
        connection = MagicMock()
        connection.in_transaction.return_value = True

        self.connector.close_connection(connection)

        connection.rollback.assert_called_once()
        connection.close.assert_called_once()

    def test_close_connection_failure_logged(self, caplog):
        """测试关闭失败只记录日志"""
        connection = MagicMock()
        connection.in_transaction.return_value = False
        connection.close.side_effect = OperationalError("close", {}, Exception("boom"))

        self.connector.close_connection(connection)

        assert "关闭数据库连接失败" in caplog.text


class TestNetworkConnectors:
    """网络数据库连接器测试类（不建立真实连接）"""

    def test_mysql_defaults(self):
        """测试MySQL默认设置、字符集与用户信息"""
        driver = Driver(
            Vendor("MySQL", 8), "sqlite3", url="mysql+pymysql://{host}:{port}/{database}"
        )
        connector = MySQLConnector(driver)

        with patch("db_core.connectors.base.create_engine") as create_engine:
            connector.configure({"database": "app", "user": "root", "password": "secret"})

        args, kwargs = create_engine.call_args
        url = args[0]
        assert url.host == "127.0.0.1"
        assert url.port == 3306
        assert url.username == "root"
        assert url.password == "secret"
        assert kwargs["connect_args"] == {"charset": "utf8mb4"}
        assert kwargs["query_cache_size"] == 1200
        assert "secret" not in connector.target

    def test_mysql_requires_database(self):
        """测试MySQL缺少数据库名"""
        connector = MySQLConnector(Driver(Vendor("MySQL"), "sqlite3", url="mysql://{host}/{database}"))

        with pytest.raises(ConfigError) as exc_info:
            connector.configure({"host": "db"})

        assert exc_info.value.error_code == "MISSING_SETTING"

    def test_postgresql_port(self):
        """测试PostgreSQL默认端口"""
        driver = Driver(
            Vendor("PostgreSQL"), "sqlite3", url="postgresql://{host}:{port}/{database}"
        )
        connector = PostgreSQLConnector(driver)

        with patch("db_core.connectors.base.create_engine") as create_engine:
            connector.configure({"database": "app", "port": "6543"})

        assert create_engine.call_args[0][0].port == 6543

    def test_missing_url(self):
        """测试没有URL模板的DBAPI驱动"""
        connector = PostgreSQLConnector(Driver(Vendor("PostgreSQL"), "sqlite3"))

        with pytest.raises(ConfigError) as exc_info:
            connector.configure({"database": "app"})

        assert exc_info.value.error_code == "MISSING_URL"

    def test_data_source_uses_factory_module(self):
        """测试连接工厂类驱动把工厂所属的DBAPI模块交给方言"""
        driver = Driver(
            Vendor("MySQL", 8),
            "sqlite3:connect",
            kind=DriverKind.DATA_SOURCE,
            properties={"database": "{database}"},
        )
        connector = MySQLConnector(driver)

        with patch("db_core.connectors.base.create_engine") as create_engine:
            connector.configure({"database": "app", "password": "secret"})

        args, kwargs = create_engine.call_args
        assert args[0] == "mysql://"
        assert kwargs["module"] is sqlite3
        assert callable(kwargs["creator"])
        assert "secret" not in connector.target


if __name__ == "__main__":
    pytest.main()
