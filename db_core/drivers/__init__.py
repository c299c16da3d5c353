"""
驱动描述模块包

- Vendor / Driver: 厂商与驱动描述值对象
- DriverCatalog: 从描述文件加载并筛选驱动
"""

from .catalog import DriverCatalog
from .vendor import Driver, DriverKind, Vendor, substitute

__all__ = [
    "Vendor",
    "Driver",
    "DriverKind",
    "DriverCatalog",
    "substitute",
]
