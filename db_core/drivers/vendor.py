"""
厂商与驱动描述模块

Vendor 标识一种数据库实现（名称 + 可选版本），Driver 描述如何加载并连接该实现。
两者都是不可变的值对象：Vendor 按名称和版本比较，Driver 只按厂商比较，
因此同一厂商的两条驱动描述被视为同一个驱动。

占位符替换：连接URL模板和属性值中的 {key} 会被设置映射中的同名值替换，
缺失的键替换为空字符串，模板本身不会被修改。
"""

import importlib
import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType, ModuleType
from typing import Any, Dict, Mapping, Optional

from ..core.exceptions import DriverError
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{([A-Za-z0-9_]+)\}")


def substitute(template: str, settings: Mapping[str, Any]) -> str:
    """
    替换模板中的 {key} 占位符

    Args:
        template: 包含占位符的模板字符串
        settings: 占位符取值映射

    Returns:
        str: 替换后的新字符串，不包含占位符的模板原样返回

    Example:
        >>> substitute("jdbc:sqlite:{path}/sample.db", {"path": "/data"})
        'jdbc:sqlite:/data/sample.db'
        >>> substitute("{host}:{port}", {"host": "localhost"})
        'localhost:'
    """

    def _replace(match: "re.Match[str]") -> str:
        value = settings.get(match.group(1))
        return "" if value is None else str(value)

    return PLACEHOLDER_PATTERN.sub(_replace, template)


def placeholders(template: Optional[str]) -> set[str]:
    """返回模板中引用的所有占位符键名"""
    if not template:
        return set()
    return set(PLACEHOLDER_PATTERN.findall(template))


@dataclass(frozen=True)
class Vendor:
    """
    数据库厂商标识

    version 为 None 表示没有版本约束，与版本 0 不同。

    Attributes:
        name (str): 厂商名称，例如 "MySQL"
        version (Optional[int]): 主版本号
    """

    name: str
    version: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.name or not isinstance(self.name, str):
            raise ValueError("厂商名称不能为空且必须是字符串")

    @property
    def has_version(self) -> bool:
        return self.version is not None

    def __str__(self) -> str:
        if self.has_version:
            return f"{self.name}-{self.version}"
        return self.name


class DriverKind(Enum):
    """驱动实现的类别，在加载驱动目录时确定"""

    # DBAPI 模块，使用URL模板建立连接
    DRIVER = "driver"
    # 返回DBAPI连接的可调用对象，使用属性作为关键字参数
    DATA_SOURCE = "data_source"


@dataclass(frozen=True)
class Driver:
    """
    驱动描述

    只有 vendor 参与相等性比较和哈希，其余字段均不参与。

    Attributes:
        vendor (Vendor): 驱动对应的厂商
        implementation (str): 驱动实现的引用，格式为 "module"、"module:attr" 或 "module.attr"
        kind (DriverKind): 驱动实现的类别
        url (Optional[str]): SQLAlchemy连接URL模板
        properties (Optional[Mapping[str, str]]): 属性模板
        queries (Optional[str]): 查询资源的基础名称
        dialect (Optional[str]): DATA_SOURCE 类驱动使用的SQLAlchemy方言
    """

    vendor: Vendor
    implementation: str = field(compare=False)
    kind: DriverKind = field(default=DriverKind.DRIVER, compare=False)
    url: Optional[str] = field(default=None, compare=False)
    properties: Optional[Mapping[str, str]] = field(default=None, compare=False)
    queries: Optional[str] = field(default=None, compare=False)
    dialect: Optional[str] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if self.properties is not None:
            object.__setattr__(
                self, "properties", MappingProxyType(dict(self.properties))
            )

    def resolve_url(self, settings: Mapping[str, Any]) -> Optional[str]:
        """使用设置替换URL模板中的占位符，没有模板时返回None"""
        if self.url is None:
            return None
        return substitute(self.url, settings)

    def resolve_properties(self, settings: Mapping[str, Any]) -> Dict[str, str]:
        """返回替换占位符后的属性副本"""
        if not self.properties:
            return {}
        return {key: substitute(value, settings) for key, value in self.properties.items()}

    def referenced_keys(self) -> set[str]:
        """URL模板和属性模板中引用的全部设置键"""
        keys = placeholders(self.url)
        for value in (self.properties or {}).values():
            keys |= placeholders(value)
        return keys

    def get_dialect(self) -> str:
        return self.dialect or self.vendor.name.lower()

    def load(self) -> Any:
        """
        导入驱动实现

        Returns:
            DBAPI 模块或连接工厂可调用对象

        Raises:
            DriverError: 当实现无法导入时
        """
        return load_implementation(self.implementation)


def load_implementation(reference: str) -> Any:
    """
    按引用字符串导入模块或模块属性

    支持 "package.module"、"package.module:attr" 和 "package.module.attr" 三种写法。

    Raises:
        DriverError: 当模块或属性不存在时
    """
    if not reference:
        raise DriverError("驱动实现引用不能为空")

    module_name, _, attr_path = reference.partition(":")
    try:
        if attr_path:
            target: Any = importlib.import_module(module_name)
            for part in attr_path.split("."):
                target = getattr(target, part)
            return target

        try:
            return importlib.import_module(reference)
        except ModuleNotFoundError:
            if "." not in reference:
                raise
            parent, _, attr = reference.rpartition(".")
            return getattr(importlib.import_module(parent), attr)

    except (ImportError, AttributeError) as e:
        raise DriverError(
            f"无法加载驱动实现 '{reference}': {str(e)}", implementation=reference
        )


def classify(implementation: Any, reference: str = "") -> DriverKind:
    """
    判断驱动实现的类别

    拥有 connect 和 paramstyle 的模块视为 DBAPI 驱动，其余可调用对象视为连接工厂。

    Raises:
        DriverError: 当实现既不是DBAPI模块也不可调用时
    """
    if isinstance(implementation, ModuleType):
        if callable(getattr(implementation, "connect", None)) and hasattr(
            implementation, "paramstyle"
        ):
            return DriverKind.DRIVER
        raise DriverError(
            f"模块 '{reference or implementation.__name__}' 不是DBAPI驱动",
            implementation=reference,
        )
    if callable(implementation):
        return DriverKind.DATA_SOURCE
    raise DriverError(f"驱动实现 '{reference}' 不可调用", implementation=reference)


def dbapi_module(reference: str) -> Optional[ModuleType]:
    """
    查找连接工厂所属的DBAPI模块

    从引用的模块部分开始逐级向上查找拥有 paramstyle 的包，
    例如 "pymysql:connect" 和 "pymysql.connections.Connection" 都得到 pymysql。

    Returns:
        Optional[ModuleType]: 找不到时返回 None
    """
    module_name, _, attr_path = reference.partition(":")
    if not attr_path:
        module_name = module_name.rpartition(".")[0] or module_name
    parts = module_name.split(".")
    while parts:
        try:
            module = importlib.import_module(".".join(parts))
        except ImportError:
            module = None
        if module is not None and hasattr(module, "paramstyle"):
            return module
        parts.pop()
    return None
