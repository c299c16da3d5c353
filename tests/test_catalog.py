"""
驱动目录测试
"""

import io
import json
import logging

import pytest

from db_core.core.exceptions import CatalogError, ConfigError
from db_core.drivers.catalog import DriverCatalog
from db_core.drivers.vendor import DriverKind, Vendor


class TestDriverCatalogLoad:
    """DriverCatalog.load 测试类"""

    def test_load_json_file(self, resources):
        """测试从JSON文件加载"""
        drivers = DriverCatalog.load(resources / "drivers.json")
        vendors = {driver.vendor for driver in drivers}

        assert vendors == {
            Vendor("SQLite"),
            Vendor("MySQL", 5),
            Vendor("MySQL", 8),
            Vendor("MySQL"),
        }

    def test_unresolvable_implementation_skipped(self, resources, caplog):
        """测试无法加载的实现被跳过并记录警告"""
        with caplog.at_level(logging.WARNING, logger="db_core"):
            drivers = DriverCatalog.load(resources / "drivers.json")

        assert Vendor("H2", 2) not in {driver.vendor for driver in drivers}
        assert "not_installed_driver.jdbc" in caplog.text

    def test_load_toml_file(self, resources):
        """测试从TOML文件加载"""
        drivers = {driver.vendor: driver for driver in DriverCatalog.load(resources / "drivers.toml")}

        sqlite = drivers[Vendor("SQLite")]
        assert sqlite.kind is DriverKind.DATA_SOURCE
        assert sqlite.dialect == "sqlite"
        assert sqlite.queries == "users"

        postgres = drivers[Vendor("PostgreSQL", 16)]
        assert postgres.kind is DriverKind.DRIVER
        assert postgres.url.startswith("postgresql+psycopg://")

    def test_data_source_end_to_end(self, resources):
        """测试数据源描述的属性替换"""
        drivers = DriverCatalog.load(resources / "drivers.toml")
        sqlite = DriverCatalog.match(drivers, "sqlite")[0]

        resolved = sqlite.resolve_properties({"path": "/data"})

        assert resolved["url"] == "jdbc:sqlite:/data/sample.db"
        assert resolved["encoding"] == "UTF-8"

    def test_load_stream_and_list(self):
        """测试从文本流和记录列表加载"""
        records = [{"class": "sqlite3", "vendor": {"name": "SQLite"}, "url": "sqlite://"}]

        from_stream = DriverCatalog.load(io.StringIO(json.dumps(records)))
        from_list = DriverCatalog.load(records)

        assert from_stream == from_list == {next(iter(from_list))}

    def test_last_record_wins(self):
        """测试同一厂商以最后一条记录为准"""
        records = [
            {"class": "sqlite3", "vendor": {"name": "SQLite"}, "url": "sqlite:///first"},
            {"class": "sqlite3", "vendor": {"name": "SQLite"}, "url": "sqlite:///second"},
        ]

        drivers = DriverCatalog.load(records)

        assert len(drivers) == 1
        assert next(iter(drivers)).url == "sqlite:///second"

    def test_version_parsing(self):
        """测试版本号解析"""
        records = [
            {"class": "sqlite3", "vendor": {"name": "A", "version": "3"}, "url": "sqlite://"},
            {"class": "sqlite3", "vendor": {"name": "B", "version": 0}, "url": "sqlite://"},
            {"class": "sqlite3", "vendor": {"name": "C", "version": "x"}, "url": "sqlite://"},
        ]

        vendors = {driver.vendor for driver in DriverCatalog.load(records)}

        assert vendors == {Vendor("A", 3), Vendor("B")}

    def test_incomplete_records_skipped(self):
        """测试缺少必需字段的记录被跳过"""
        records = [
            {"vendor": {"name": "SQLite"}, "url": "sqlite://"},
            {"class": "sqlite3", "url": "sqlite://"},
            {"class": "sqlite3", "vendor": {"name": "SQLite"}},
            {"class": "json", "vendor": {"name": "Json"}, "url": "x://"},
        ]

        assert DriverCatalog.load(records) == set()

    def test_non_string_properties_ignored(self):
        """测试非字符串属性被忽略"""
        records = [
            {
                "class": "sqlite3:connect",
                "vendor": {"name": "SQLite"},
                "properties": {"database": "{path}", "timeout": 5},
            }
        ]

        driver = next(iter(DriverCatalog.load(records)))

        assert dict(driver.properties) == {"database": "{path}"}

    def test_jdbc_url_alias(self):
        """测试 jdbcUrl 作为URL键"""
        records = [{"class": "sqlite3", "vendor": {"name": "SQLite"}, "jdbcUrl": "sqlite://"}]

        assert next(iter(DriverCatalog.load(records))).url == "sqlite://"

    @pytest.mark.parametrize(
        "payload",
        [
            {"class": "sqlite3"},
            "drivers",
            [{"class": "sqlite3", "vendor": {"name": "SQLite"}, "url": "sqlite://"}, "oops"],
        ],
    )
    def test_malformed_top_level(self, payload):
        """测试顶层结构非法时整体失败"""
        with pytest.raises(CatalogError):
            DriverCatalog.load(io.StringIO(json.dumps(payload)))

    def test_catalog_error_is_value_error(self, tmp_path):
        """测试目录错误同时属于配置错误和 ValueError"""
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(CatalogError) as exc_info:
            DriverCatalog.load(path)

        assert isinstance(exc_info.value, ConfigError)
        assert isinstance(exc_info.value, ValueError)
        assert exc_info.value.details["config_file"] == str(path)

    def test_missing_file(self, tmp_path):
        """测试文件不存在"""
        with pytest.raises(CatalogError):
            DriverCatalog.load(tmp_path / "missing.json")


class TestDriverCatalogMatch:
    """DriverCatalog.match 测试类"""

    def setup_method(self):
        """测试方法 setup"""
        self.drivers = DriverCatalog.load(
            [
                {"class": "sqlite3", "vendor": {"name": "MySQL"}, "url": "sqlite://"},
                {"class": "sqlite3", "vendor": {"name": "MySQL", "version": 5}, "url": "sqlite://"},
                {"class": "sqlite3", "vendor": {"name": "mysql", "version": 8}, "url": "sqlite://"},
                {"class": "sqlite3", "vendor": {"name": "SQLite"}, "url": "sqlite://"},
            ]
        )

    def test_case_insensitive_descending(self):
        """测试不区分大小写并按版本降序"""
        matched = DriverCatalog.match(self.drivers, "MYSQL")

        assert [driver.vendor.version for driver in matched] == [8, 5, None]

    def test_no_match(self):
        """测试没有匹配"""
        assert DriverCatalog.match(self.drivers, "Oracle") == []

    def test_read(self, resources):
        """测试加载并筛选"""
        matched = DriverCatalog.read(resources / "drivers.json", "mysql")

        assert [driver.vendor for driver in matched] == [
            Vendor("MySQL", 8),
            Vendor("MySQL", 5),
            Vendor("MySQL"),
        ]


if __name__ == "__main__":
    pytest.main()
