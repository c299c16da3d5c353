"""
驱动目录加载模块

从结构化描述文件（JSON数组或TOML的 [[drivers]] 表数组）中读取驱动描述，
并按厂商名称筛选。

描述记录格式（JSON）::

    [
        {
            "class": "sqlite3",
            "vendor": {"name": "SQLite"},
            "url": "sqlite:///{path}/{database}.db",
            "queries": "queries"
        },
        {
            "class": "pymysql",
            "vendor": {"name": "MySQL", "version": 8},
            "url": "mysql+pymysql://{host}:{port}/{database}"
        }
    ]

单条记录无法解析时跳过并记录警告；顶层结构非法时整体失败。
"""

import json
import tomllib
from pathlib import Path
from typing import IO, Any, Dict, Iterable, List, Optional, Set, Union

from ..core.exceptions import CatalogError, DriverError
from ..utils.logging_utils import get_logger
from .vendor import Driver, DriverKind, Vendor, classify, load_implementation

logger = get_logger(__name__)

CatalogSource = Union[str, Path, IO[str], List[Any]]

# 记录中允许的URL键，按优先级排列
URL_KEYS = ("url", "jdbcUrl")


class DriverCatalog:
    """
    驱动目录

    所有方法均为类方法，目录本身就是 load 返回的 Driver 集合。

    Example:
        >>> drivers = DriverCatalog.load("drivers.json")
        >>> candidates = DriverCatalog.match(drivers, "mysql")
        >>> newest = candidates[0]
    """

    @classmethod
    def load(cls, source: CatalogSource) -> Set[Driver]:
        """
        加载驱动描述

        Args:
            source: 描述文件路径（.json 或 .toml）、文本流或已解析的记录列表

        Returns:
            Set[Driver]: 驱动描述集合，同一厂商以最后一条记录为准

        Raises:
            CatalogError: 当文件无法解析或顶层结构不是对象列表时
        """
        records = cls._read_records(source)

        drivers: Dict[Vendor, Driver] = {}
        for index, record in enumerate(records):
            driver = cls._parse_record(index, record)
            if driver is not None:
                # 先删除再插入，保证同一厂商保留最后加载的记录
                drivers.pop(driver.vendor, None)
                drivers[driver.vendor] = driver

        logger.info(f"驱动目录加载完成，共 {len(drivers)} 个驱动")
        return set(drivers.values())

    @classmethod
    def match(cls, drivers: Iterable[Driver], vendor_name: str) -> List[Driver]:
        """
        按厂商名称筛选驱动（不区分大小写）

        Returns:
            List[Driver]: 按版本从高到低排序，未声明版本的驱动排在最后
        """
        wanted = vendor_name.casefold()
        matched = [d for d in drivers if d.vendor.name.casefold() == wanted]
        matched.sort(
            key=lambda d: (d.vendor.version is not None, d.vendor.version or 0),
            reverse=True,
        )
        return matched

    @classmethod
    def read(cls, source: CatalogSource, vendor_name: str) -> List[Driver]:
        """加载描述并立即按厂商名称筛选"""
        return cls.match(cls.load(source), vendor_name)

    @classmethod
    def _read_records(cls, source: CatalogSource) -> List[Any]:
        if isinstance(source, list):
            records: Any = source
        elif isinstance(source, (str, Path)):
            path = Path(source)
            try:
                if path.suffix.lower() == ".toml":
                    with open(path, "rb") as f:
                        records = tomllib.load(f).get("drivers")
                else:
                    with open(path, "r", encoding="utf-8") as f:
                        records = json.load(f)
            except OSError as e:
                raise CatalogError(
                    f"无法读取驱动目录文件: {str(e)}", config_file=str(path)
                )
            except (json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
                raise CatalogError(
                    f"驱动目录文件格式错误: {str(e)}", config_file=str(path)
                )
        else:
            try:
                records = json.load(source)
            except json.JSONDecodeError as e:
                raise CatalogError(f"驱动目录格式错误: {str(e)}")

        if not isinstance(records, list):
            raise CatalogError(
                f"驱动目录顶层必须是列表，实际为 {type(records).__name__}",
                error_code="CATALOG_NOT_A_LIST",
            )
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                raise CatalogError(
                    f"驱动目录第 {index} 条记录必须是对象，实际为 {type(record).__name__}",
                    error_code="CATALOG_ENTRY_NOT_AN_OBJECT",
                )
        return records

    @classmethod
    def _parse_record(cls, index: int, record: Dict[str, Any]) -> Optional[Driver]:
        """解析单条记录，无法使用的记录返回None"""
        implementation = record.get("class")
        vendor_data = record.get("vendor")

        if not isinstance(implementation, str) or not implementation:
            logger.warning(f"跳过驱动记录 {index}: 缺少实现引用 'class'")
            return None
        if not isinstance(vendor_data, dict) or not vendor_data.get("name"):
            logger.warning(f"跳过驱动记录 {index} ({implementation}): 缺少厂商名称")
            return None

        try:
            vendor = Vendor(str(vendor_data["name"]), _parse_version(vendor_data.get("version")))
        except ValueError as e:
            logger.warning(f"跳过驱动记录 {index} ({implementation}): {str(e)}")
            return None

        try:
            kind = classify(load_implementation(implementation), implementation)
        except DriverError as e:
            logger.warning(f"跳过驱动 {vendor} ({implementation}): {e.message}")
            return None

        url = next(
            (record[key] for key in URL_KEYS if isinstance(record.get(key), str)), None
        )
        if kind is DriverKind.DRIVER and url is None:
            logger.warning(f"跳过驱动 {vendor} ({implementation}): DBAPI驱动缺少URL模板")
            return None

        properties = None
        raw_properties = record.get("properties")
        if isinstance(raw_properties, dict):
            properties = {}
            for key, value in raw_properties.items():
                if isinstance(value, str):
                    properties[key] = value
                else:
                    logger.warning(f"驱动 {vendor} 的属性 '{key}' 不是字符串，已忽略")

        queries = record.get("queries")
        dialect = record.get("dialect")

        logger.debug(f"已加载驱动 {vendor}: {implementation} ({kind.value})")
        return Driver(
            vendor=vendor,
            implementation=implementation,
            kind=kind,
            url=url,
            properties=properties,
            queries=queries if isinstance(queries, str) else None,
            dialect=dialect if isinstance(dialect, str) else None,
        )


def _parse_version(value: Any) -> Optional[int]:
    """
    解析版本号，缺失或非正数视为未设置

    Raises:
        ValueError: 当版本号不是整数时
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"无效的版本号: {value!r}")
    try:
        version = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"无效的版本号: {value!r}")
    return version if version > 0 else None
